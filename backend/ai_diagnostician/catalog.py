"""Static catalog of AI literacy concepts the quiz draws from."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .questions import Archetype

M = Archetype.MATCH
B = Archetype.BUCKET
S = Archetype.SINGLE_SELECT
T = Archetype.TRUE_FALSE
F = Archetype.FREE_TEXT


@dataclass(frozen=True)
class Concept:
    id: str
    supported_archetypes: FrozenSet[Archetype]
    description: str
    keywords: Tuple[str, ...] = field(default_factory=tuple)

    def supports(self, archetype: Archetype) -> bool:
        return archetype in self.supported_archetypes


def _concept(id: str, archetypes: Iterable[Archetype], description: str, *keywords: str) -> Concept:
    return Concept(id=id, supported_archetypes=frozenset(archetypes), description=description, keywords=tuple(keywords))


CONCEPTS: Tuple[Concept, ...] = (
    # Large language models
    _concept(
        "LLM",
        (M, S, T, F),
        "What a large language model is, its structure, how it is trained, where it is applied, "
        "and principles such as next word prediction",
        "LLM", "large language model", "language model", "next word prediction",
    ),
    _concept("LLM_structure", (M, S), "The internal structure of an LLM", "LLM", "structure", "architecture"),
    _concept("LLM_training", (M, S), "How LLMs are trained", "training", "pretraining", "pre-training"),
    _concept("LLM_application", (B, S), "Application scenarios for LLMs", "application", "use case"),
    # Prompt engineering
    _concept(
        "prompt",
        (M, T, S, F),
        "How to build effective prompts, typical prompt patterns, prompt examples and templates",
        "prompt", "prompt engineering",
    ),
    _concept("prompt_engineering", (M, S), "Prompt engineering", "prompt engineering"),
    _concept("prompt_patterns", (M, S), "Typical prompt patterns", "prompt pattern", "template"),
    # Deep learning
    _concept(
        "deep_learning",
        (M, S, T),
        "What deep learning is, basic neural network structure, activations, layers and the training process",
        "deep learning",
    ),
    _concept("neural_network", (M, T, S), "Basic structure of a neural network", "neural network", "neuron", "layer"),
    _concept("activation", (M, S), "Activation functions", "activation"),
    _concept("neural_layers", (M, S), "Layers in a neural network", "layer"),
    # Machine learning
    _concept(
        "machine_learning",
        (M, S, T),
        "Supervised versus unsupervised learning, labeled data and the model learning workflow, "
        "and how machine learning relates to deep learning",
        "machine learning", "ML",
    ),
    _concept("supervised_learning", (M, S), "Supervised learning", "supervised learning", "labeled data"),
    _concept("unsupervised_learning", (M, S), "Unsupervised learning", "unsupervised learning"),
    _concept("labeled_data", (M, S), "Labeled data", "labeled data", "label"),
    # How AI, ML and DL relate
    _concept(
        "AI_ML_DL_relation",
        (M, S, B),
        "The differences and relationships between AI, machine learning, deep learning and neural networks",
        "artificial intelligence", "AI", "ML", "DL", "vs",
    ),
    # Retrieval-augmented generation
    _concept(
        "RAG",
        (M, S, T),
        "What RAG is, how retrieval-augmented generation works and when to use it",
        "RAG", "retrieval-augmented generation", "retrieval augmented",
    ),
    _concept("RAG_workflow", (M, S), "The RAG workflow", "RAG", "workflow", "process"),
    # Embeddings
    _concept(
        "embedding",
        (M, S, T),
        "What an embedding is, vector databases and the basics of semantic search",
        "embedding", "vector", "vector embedding",
    ),
    _concept("vector_database", (M, S), "Vector databases", "vector database"),
    _concept("semantic_search", (M, S), "Semantic search", "semantic search", "semantic"),
    # Transformers
    _concept(
        "transformer",
        (M, S, T),
        "Self-attention and the role of the transformer architecture in LLMs",
        "transformer", "transformer model",
    ),
    _concept("self_attention", (M, S), "The self-attention mechanism", "self-attention", "attention mechanism"),
    # Context window and tokens
    _concept(
        "context_window",
        (M, S, T),
        "The LLM context window, how tokenization works, and how both affect output and understanding",
        "context window", "context length",
    ),
    _concept("token", (M, S), "How tokenization works", "token", "tokenization"),
    _concept("tokenization", (M, S), "Tokenization", "tokenization", "tokenize"),
    # Fine-tuning
    _concept(
        "finetuning",
        (M, S, T),
        "What fine-tuning is, why large models need fine-tuning, and the basic process",
        "fine-tuning", "fine tuning",
    ),
    _concept("fine_tuning_reason", (M, S), "Why large models need fine-tuning", "fine-tuning", "why", "reason"),
    _concept("fine_tuning_process", (M, S), "The basic fine-tuning process", "fine-tuning", "process"),
    # Responsible use
    _concept(
        "responsible_AI",
        (B, S, T, F),
        "Compliance, privacy, safety, output quality checks and evaluation of generative AI, "
        "and usage norms in business and teaching settings",
        "responsible", "responsible AI", "guidelines",
    ),
    _concept("AI_safety", (B, S), "Safe use of AI", "safety", "secure"),
    _concept("AI_quality_check", (B, S), "Checking and evaluating output quality", "quality", "evaluation", "check"),
)

_BY_ID: Dict[str, Concept] = {c.id: c for c in CONCEPTS}


def get_concept(concept_id: str) -> Optional[Concept]:
    return _BY_ID.get(concept_id)


def concepts_for(archetype: Archetype) -> List[Concept]:
    """Catalog concepts that can be asked in the given archetype."""
    return [c for c in CONCEPTS if c.supports(archetype)]


def ad_hoc_concept(concept_id: str) -> Concept:
    """A concept outside the catalog, usable with any archetype."""
    return Concept(id=concept_id, supported_archetypes=frozenset(Archetype), description=concept_id)

"""
RAG Module - Retrieval-Augmented Generation pipeline.
=====================================================

This module implements the complete chat workflow:

- typo: Dictionary-based typo correction
- query_analyzer: Complexity, intent and vagueness analysis
- query_types: Query routing and schedule filter extraction
- topics: Declarative topic profiles for typed search
- search: Hybrid topic/vector/keyword search
- context: Token-budgeted context assembly
- cache: TTL response cache tied to the knowledge version
- guardrails: Conversation reset and clarification prompts
- prompts / generator: Gemini prompt building and generation
- analytics: Query log and top queries
- chat: The end-to-end chat pipeline

RAG Flow:
    Message → Typo fix → Analysis → Cache? → Search → Context → LLM → Answer
"""

from dorsu_connect.rag.analytics import QueryAnalytics, get_query_analytics
from dorsu_connect.rag.cache import ResponseCache, get_response_cache
from dorsu_connect.rag.chat import ChatService, get_chat_service
from dorsu_connect.rag.context import RAGService, RetrievedContext, get_rag_service
from dorsu_connect.rag.generator import Generator, get_generator
from dorsu_connect.rag.guardrails import build_clarification_message, is_conversation_reset_request
from dorsu_connect.rag.prompts import PromptBuilder, build_prompt
from dorsu_connect.rag.query_analyzer import QueryAnalyzer, get_query_analyzer
from dorsu_connect.rag.query_types import (
    detect_query_type,
    extract_schedule_filters,
    is_basic_university_query,
    is_comprehensive_query,
    is_schedule_query,
)
from dorsu_connect.rag.search import HybridSearchService
from dorsu_connect.rag.topics import TopicProfile, profile_for
from dorsu_connect.rag.typo import TypoCorrector, correct_typos

__all__ = [
    # Query understanding
    "TypoCorrector",
    "correct_typos",
    "QueryAnalyzer",
    "get_query_analyzer",
    "detect_query_type",
    "extract_schedule_filters",
    "is_basic_university_query",
    "is_comprehensive_query",
    "is_schedule_query",
    # Search
    "TopicProfile",
    "profile_for",
    "HybridSearchService",
    "RAGService",
    "RetrievedContext",
    "get_rag_service",
    # Generation
    "PromptBuilder",
    "build_prompt",
    "Generator",
    "get_generator",
    # Chat
    "ResponseCache",
    "get_response_cache",
    "QueryAnalytics",
    "get_query_analytics",
    "build_clarification_message",
    "is_conversation_reset_request",
    "ChatService",
    "get_chat_service",
]

from insightflow.llm.analysis import AnalysisParseError, analyze_content, parse_analysis_response
from insightflow.llm.embeddings import Embedder, OpenAIEmbedder
from insightflow.llm.gateway import LLMServiceError, ProviderError, ProviderGateway
from insightflow.llm.schemas import ChatMessage, ProviderOptions, ThreePillarResult

__all__ = [
    "AnalysisParseError",
    "ChatMessage",
    "Embedder",
    "LLMServiceError",
    "OpenAIEmbedder",
    "ProviderError",
    "ProviderGateway",
    "ProviderOptions",
    "ThreePillarResult",
    "analyze_content",
    "parse_analysis_response",
]

from insightflow.storage.blob_store import BlobStore, RedisBlobStore, content_key_for
from insightflow.storage.vector_index import ChromaVectorIndex, VectorIndex, VectorMatch

__all__ = [
    "BlobStore",
    "ChromaVectorIndex",
    "RedisBlobStore",
    "VectorIndex",
    "VectorMatch",
    "content_key_for",
]

"""Wiring of clients, indexes and pipelines from a Settings object."""

from dataclasses import dataclass

from snaprag.captions import CaptionSynthesizer
from snaprag.config import Settings
from snaprag.embeddings import LocalEmbeddings, OpenAIEmbeddings, build_embeddings
from snaprag.indexer import ContentIndexer
from snaprag.llm_client import OpenAIClient
from snaprag.rag_pipeline import RAGPipeline
from snaprag.retriever import ContentRetriever
from snaprag.store import ContentStore
from snaprag.tagging import TagExtractor
from snaprag.vector_index import ChromaVectorIndex


@dataclass
class Services:
    store: ContentStore
    vector_index: ChromaVectorIndex
    embeddings: OpenAIEmbeddings | LocalEmbeddings
    llm_client: OpenAIClient
    tag_extractor: TagExtractor
    captioner: CaptionSynthesizer
    pipeline: RAGPipeline
    indexer: ContentIndexer


def build_services(settings: Settings) -> Services:
    store = ContentStore(settings.DATABASE_URL)
    vector_index = ChromaVectorIndex(
        index_path=settings.CHROMA_PATH,
        collection_name=settings.CHROMA_COLLECTION,
        dimensions=settings.EMBEDDING_DIMENSIONS,
    )
    embeddings = build_embeddings(settings)
    llm_client = OpenAIClient(api_key=settings.OPENAI_API_KEY, model=settings.CHAT_MODEL)
    tag_extractor = TagExtractor(llm_client)
    retriever = ContentRetriever(store, vector_index, threshold=settings.SIMILARITY_THRESHOLD)

    return Services(
        store=store,
        vector_index=vector_index,
        embeddings=embeddings,
        llm_client=llm_client,
        tag_extractor=tag_extractor,
        captioner=CaptionSynthesizer(llm_client),
        pipeline=RAGPipeline(retriever, embeddings, llm_client),
        indexer=ContentIndexer(store, vector_index, embeddings, tag_extractor),
    )

"""Composition root: builds every service from one ``Settings`` object.

Services receive their dependencies explicitly; nothing else in the
package reads settings or holds module-level clients. Tests build a
``Services`` with fakes through the keyword overrides.
"""

import logging
from dataclasses import dataclass

from meetnotes.core.config import Settings
from meetnotes.services.jobs import JobStateStore
from meetnotes.services.llm import BaseLLM, create_llm
from meetnotes.services.notifications import StatusHub
from meetnotes.services.objects import BaseObjectStore, create_object_store
from meetnotes.services.storage.database import Database
from meetnotes.services.summarization import MeetingSummarizer, SummarizationInvoker
from meetnotes.services.sweeper import RecordingSweeper
from meetnotes.services.transcription import BaseSTT, create_stt
from meetnotes.services.transcription.invoker import TranscriptionInvoker
from meetnotes.services.upload import ChunkedUploader

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the API and the sweep script need."""

    settings: Settings
    database: Database
    hub: StatusHub
    object_store: BaseObjectStore
    stt: BaseSTT
    llm: BaseLLM
    jobs: JobStateStore
    uploader: ChunkedUploader
    transcriber: TranscriptionInvoker
    summarizer: SummarizationInvoker
    sweeper: RecordingSweeper

    async def aclose(self) -> None:
        """Close network clients and the database engine."""
        for closeable in (self.stt, self.llm, self.object_store):
            await closeable.aclose()
        await self.database.close()


def _create_llm(settings: Settings) -> BaseLLM:
    if settings.llm_provider == "openai":
        return create_llm(
            "openai",
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url or None,
            temperature=settings.summary_temperature,
        )
    if settings.llm_provider == "claude":
        return create_llm(
            "claude",
            api_key=settings.claude_api_key,
            model=settings.claude_model,
            temperature=settings.summary_temperature,
        )
    return create_llm(
        settings.llm_provider,
        base_url=settings.ollama_base_url,
        model=settings.ollama_model,
        temperature=settings.summary_temperature,
    )


def _create_stt(settings: Settings) -> BaseSTT:
    return create_stt(
        settings.stt_provider,
        api_key=settings.deepgram_api_key,
        base_url=settings.deepgram_base_url,
        model=settings.deepgram_model,
        language=settings.stt_language,
        max_attempts=settings.stt_max_attempts,
        retry_wait=settings.stt_retry_wait_seconds,
        timeout=settings.stt_timeout_seconds,
    )


def build_services(
    settings: Settings,
    *,
    database: Database | None = None,
    object_store: BaseObjectStore | None = None,
    stt: BaseSTT | None = None,
    llm: BaseLLM | None = None,
    hub: StatusHub | None = None,
) -> Services:
    """Wire the pipeline together.

    Args:
        settings: Application settings.
        database, object_store, stt, llm, hub: Optional prebuilt components
            used instead of the ones ``settings`` describes.
    """
    database = database or Database(settings.database_url)
    hub = hub or StatusHub()
    object_store = object_store or create_object_store(settings)
    stt = stt or _create_stt(settings)
    llm = llm or _create_llm(settings)

    jobs = JobStateStore(database, hub)
    uploader = ChunkedUploader(
        object_store,
        chunk_size=settings.upload_chunk_size,
        threshold=settings.upload_chunk_threshold,
        max_concurrency=settings.upload_max_concurrency,
        tmp_prefix=settings.upload_tmp_prefix,
        read_url_ttl=settings.chunk_read_url_ttl_seconds,
    )
    transcriber = TranscriptionInvoker(
        jobs,
        database,
        object_store,
        stt,
        hub=hub,
        signed_url_ttl=settings.signed_url_ttl_seconds,
    )
    summarizer = SummarizationInvoker(
        jobs, database, MeetingSummarizer(llm, temperature=settings.summary_temperature)
    )
    sweeper = RecordingSweeper(
        jobs,
        object_store,
        transcriber,
        summarizer,
        batch_size=settings.sweep_batch_size,
        auto_summarize=settings.sweep_auto_summarize,
        pending_timeout=settings.pending_upload_timeout_seconds,
    )
    logger.info(
        "Services ready (storage=%s, stt=%s, llm=%s)",
        settings.storage_provider,
        settings.stt_provider,
        settings.llm_provider,
    )
    return Services(
        settings=settings,
        database=database,
        hub=hub,
        object_store=object_store,
        stt=stt,
        llm=llm,
        jobs=jobs,
        uploader=uploader,
        transcriber=transcriber,
        summarizer=summarizer,
        sweeper=sweeper,
    )

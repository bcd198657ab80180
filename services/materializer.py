import logging
import os
import shutil
from typing import Optional

import httpx
from fastapi.concurrency import run_in_threadpool

from chat_providers.base import BaseChatClient
from config_models import MaterializerConfig
from infrastructure.exceptions import ChatPlatformError, MaterializationError

logger = logging.getLogger(__name__)


class Materializer:
    """
    Writes a confirmed video to its target path.

    The chat client's getFile answer decides the source kind: a local Bot API
    server returns an absolute path inside its shared volume, which is copied
    after rewriting the volume prefix; anything else is downloaded over HTTP.
    Both write to "<target>.part" first and rename on completion.
    """

    def __init__(
        self,
        chat_client: BaseChatClient,
        config: MaterializerConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.chat_client = chat_client
        self.config = config
        self._transport = transport

    async def materialize(self, file_id: str, target_path: str) -> str:
        if not target_path:
            raise MaterializationError(f"No target path for file {file_id}")

        target_dir = os.path.dirname(target_path)
        try:
            if target_dir:
                await run_in_threadpool(os.makedirs, target_dir, exist_ok=True)
        except OSError as e:
            raise MaterializationError(f"Could not create directory {target_dir}: {e}", original_error=e)
        logger.info(f"MATERIALIZER: Target directory ensured: {target_dir}")

        try:
            descriptor = await self.chat_client.get_file(file_id)
        except ChatPlatformError as e:
            raise MaterializationError(f"Could not resolve file {file_id}: {e}", original_error=e)

        source = descriptor.file_path
        if source.startswith(("http://", "https://")):
            await self._download(source, target_path)
        elif os.path.isabs(source):
            await self._copy_local(self.rewrite_shared_path(source), target_path)
        else:
            await self._download(self.chat_client.build_file_url(source), target_path)

        logger.info(f"MATERIALIZER: File processed successfully to: {target_path}")
        return target_path

    def rewrite_shared_path(self, source_path: str) -> str:
        prefix = self.config.shared_source_prefix
        if prefix and source_path.startswith(prefix):
            return self.config.shared_local_prefix + source_path[len(prefix):]
        return source_path

    async def _copy_local(self, source_path: str, target_path: str):
        logger.info(f"MATERIALIZER: Copying file from: {source_path} to {target_path}")
        part_path = f"{target_path}.part"
        try:
            await run_in_threadpool(shutil.copyfile, source_path, part_path)
            await run_in_threadpool(os.replace, part_path, target_path)
        except OSError as e:
            self._discard(part_path)
            raise MaterializationError(f"File copy failed: {e}", original_error=e)

    async def _download(self, url: str, target_path: str):
        # The URL may embed the bot token; only the target is logged.
        logger.info(f"MATERIALIZER: Downloading file to {target_path}")
        part_path = f"{target_path}.part"
        timeout = httpx.Timeout(30.0, read=self.config.download_timeout_seconds)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    f = await run_in_threadpool(open, part_path, "wb")
                    try:
                        async for chunk in response.aiter_bytes(self.config.chunk_size):
                            await run_in_threadpool(f.write, chunk)
                    finally:
                        await run_in_threadpool(f.close)
            await run_in_threadpool(os.replace, part_path, target_path)
        except httpx.HTTPStatusError as e:
            self._discard(part_path)
            raise MaterializationError(
                f"File download failed: HTTP {e.response.status_code}", original_error=e
            )
        except (httpx.HTTPError, OSError) as e:
            self._discard(part_path)
            raise MaterializationError(f"File download failed: {e}", original_error=e)

    @staticmethod
    def _discard(path: str):
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError:
            logger.warning(f"MATERIALIZER: Could not remove partial file {path}")

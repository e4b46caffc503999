# CompletionClient: the only place that talks to the Anthropic API.
# Sends system prompt + content to the Messages API, falls back once to a
# second model, records token usage with the Monitor, and turns SDK failures
# into UpstreamError. Also wraps the Files API used by !uploaddata.

import logging
import anthropic

from senan.errors import UpstreamError
from senan.models import Completion

logger = logging.getLogger(__name__)

FILES_API_BETA = "files-api-2025-04-14"

# Statuses worth retrying later: overloaded / temporarily unavailable
_RETRYABLE_STATUSES = {408, 409, 429, 500, 502, 503, 504, 529}


def classify_error(exc: Exception) -> UpstreamError:
    """
    Map an SDK exception to an UpstreamError.

    Rate limiting and temporary unavailability (5xx, 529 overloaded,
    connection errors, timeouts) are retryable; everything else (auth,
    bad request, unknown model) is terminal.
    """
    if isinstance(exc, anthropic.RateLimitError):
        return UpstreamError(f"Rate limited by completion API: {exc}", status=429, retryable=True)
    if isinstance(exc, anthropic.APIStatusError):
        status = exc.status_code
        return UpstreamError(
            f"Completion API returned {status}: {exc}",
            status=status,
            retryable=status in _RETRYABLE_STATUSES,
        )
    if isinstance(exc, anthropic.APIConnectionError):
        return UpstreamError(f"Could not reach completion API: {exc}", retryable=True)
    return UpstreamError(f"Completion API failed: {exc}")


def _response_text(response) -> str:
    return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")


class CompletionClient:

    def __init__(self, api_key: str = None, model: str = "claude-sonnet-4-5-20250929",
                 fallback_model: str = "claude-sonnet-4-20250514", monitor=None, client=None):
        self.model = model
        self.fallback_model = fallback_model
        self.monitor = monitor
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def _create(self, create, **kwargs) -> Completion:
        """
        Call create(model=..., **kwargs), retrying once with the fallback
        model if the primary call fails for any API reason.
        """
        models = [self.model]
        if self.fallback_model and self.fallback_model != self.model:
            models.append(self.fallback_model)

        last_error = None
        for model in models:
            try:
                response = await create(model=model, **kwargs)
            except anthropic.APIError as e:
                last_error = e
                logger.warning("Completion with %s failed: %s", model, e)
                continue

            usage = getattr(response, "usage", None)
            result = Completion(
                text=_response_text(response),
                model=model,
                input_tokens=getattr(usage, "input_tokens", 0) or 0,
                output_tokens=getattr(usage, "output_tokens", 0) or 0,
            )
            if self.monitor is not None:
                self.monitor.track_api_usage(result.input_tokens, result.output_tokens, model)
            if model != self.model:
                logger.info("Answered with fallback model %s", model)
            return result

        raise classify_error(last_error)

    async def complete(self, system_prompt: str, content: str, max_tokens: int = 1500) -> Completion:
        return await self._create(
            self.client.messages.create,
            max_tokens=max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": content}],
        )

    async def complete_with_files(self, system_prompt: str, content: str, file_ids: list,
                                  max_tokens: int = 1500) -> Completion:
        """Same as complete(), with uploaded files attached as document blocks."""
        blocks = [
            {"type": "document", "source": {"type": "file", "file_id": file_id}}
            for file_id in file_ids
        ]
        blocks.append({"type": "text", "text": content})
        return await self._create(
            self.client.beta.messages.create,
            max_tokens=max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": blocks}],
            betas=[FILES_API_BETA],
        )

    # ─────────────────────────────────────────
    # FILES API
    # ─────────────────────────────────────────

    async def upload_file(self, filename: str, data: bytes, mime_type: str = "text/plain") -> str:
        try:
            uploaded = await self.client.beta.files.upload(file=(filename, data, mime_type))
        except anthropic.APIError as e:
            raise classify_error(e) from e
        logger.info("Uploaded %s as %s", filename, uploaded.id)
        return uploaded.id

    async def list_files(self) -> list:
        """Workspace files as plain dicts: id, filename, size_bytes, created_at."""
        files = []
        try:
            async for item in self.client.beta.files.list():
                files.append({
                    "id": item.id,
                    "filename": item.filename,
                    "size_bytes": getattr(item, "size_bytes", 0),
                    "created_at": str(getattr(item, "created_at", "")),
                })
        except anthropic.APIError as e:
            raise classify_error(e) from e
        return files

    async def delete_file(self, file_id: str) -> None:
        try:
            await self.client.beta.files.delete(file_id)
        except anthropic.APIError as e:
            raise classify_error(e) from e
        logger.info("Deleted uploaded file %s", file_id)

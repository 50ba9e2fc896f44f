from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from ..config.models import PatcherConfig
from ..patching.models import Architecture, PatchPhase, PatchReport, ProgressEvent
from ..utils.async_utils import drain_until_done, run_blocking
from .models import CancelToken
from .patch_controller import apply_patches


def _queue_event(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, event: ProgressEvent) -> None:
    loop.call_soon_threadsafe(queue.put_nowait, event)


async def apply_patches_stream(
    install_root: Union[str, Path],
    definitions: Union[str, bytes],
    config: Optional[PatcherConfig] = None,
    architecture: Union[str, Architecture, None] = None,
    cancel_token: Optional[CancelToken] = None,
) -> AsyncIterator[ProgressEvent]:
    """Yield engine progress events, then one ``result`` event carrying the report.

    Fatal errors are raised from the iterator after the queued events drained.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def progress_cb(event: ProgressEvent) -> None:
        _queue_event(loop, queue, event)

    task = asyncio.ensure_future(
        run_blocking(
            apply_patches,
            install_root,
            definitions,
            config=config,
            architecture=architecture,
            progress_cb=progress_cb,
            cancel_token=cancel_token,
        )
    )

    async for event in drain_until_done(task, queue):
        yield event

    result: PatchReport = task.result()
    yield ProgressEvent(PatchPhase.DONE, 100, "Finished", kind="result", result=result)

"""RTX Patcher utils: Ok/Err results and asyncio helpers shared by the app layer."""

from .async_utils import drain_until_done, run_blocking
from .result import Err, Ok, Result, error_details, error_message, is_err, is_ok, unwrap, unwrap_or

__all__ = [
    "Err",
    "Ok",
    "Result",
    "drain_until_done",
    "error_details",
    "error_message",
    "is_err",
    "is_ok",
    "run_blocking",
    "unwrap",
    "unwrap_or",
]

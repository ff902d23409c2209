# app/utils/retry.py
import requests
from tenacity import retry, retry_if_exception, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.domain.errors import TransientStorageError


def http_retry():
    #only failures where the request never reached the server
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.ConnectionError),
    )


def _retryable_storage_error(exc: BaseException) -> bool:
    return isinstance(exc, TransientStorageError) and not exc.ambiguous


def storage_retry(attempts: int = 3):
    #caller-side retry; ambiguous writes are never repeated
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception(_retryable_storage_error),
    )

# app/services/enrichment.py
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Dict, List, Sequence

from sqlalchemy.orm import sessionmaker

from app.domain.entities import CartLine, ProductSnapshot
from app.domain.errors import TransientStorageError
from app.domain.schemas import EnrichedLine
from app.repos.product_repo import ProductRepo
from app.utils.logging import get_logger
from app.utils.settings import (
    ENRICHMENT_BATCH_SIZE,
    ENRICHMENT_MAX_WORKERS,
    ENRICHMENT_TIMEOUT_SECONDS,
)
from app.utils.storage import storage_guard

logger = get_logger(__name__)

BatchFetcher = Callable[[List[str]], List[ProductSnapshot]]


def chunked(items: Sequence, size: int) -> List[list]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class ProductBatchReader:
    """
    Batch-get of product metadata.
    Every call opens its own session, so batches can run on separate threads.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def __call__(self, product_ids: List[str]) -> List[ProductSnapshot]:
        db = self.session_factory()
        try:
            with storage_guard(db, "product batch get"):
                products = ProductRepo(db).batch_get(product_ids)
                return [
                    ProductSnapshot(
                        product_id=p.product_id,
                        name=p.name,
                        unit_price=p.unit_price,
                        image_ref=p.image_ref,
                    )
                    for p in products
                ]
        finally:
            db.close()


class EnrichmentJoiner:
    """
    Joins cart lines with product name, price and image.

    - distinct keys only, batches of at most `batch_size`
    - batches fetched concurrently, any batch failure fails the call
    - dangling product references get defaults instead of failing the cart
    """

    def __init__(
        self,
        fetch_batch: BatchFetcher,
        batch_size: int = ENRICHMENT_BATCH_SIZE,
        max_workers: int = ENRICHMENT_MAX_WORKERS,
        timeout: float = ENRICHMENT_TIMEOUT_SECONDS,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.fetch_batch = fetch_batch
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.timeout = timeout

    def enrich(self, lines: Sequence[CartLine]) -> List[EnrichedLine]:
        keys = list(dict.fromkeys(line.product_id for line in lines))
        if not keys:
            return []

        products = self._fetch_all(chunked(keys, self.batch_size))

        missing = [k for k in keys if k not in products]
        if missing:
            logger.warning(f"No product data for {missing}, using defaults")

        enriched = []
        for line in lines:
            product = products.get(line.product_id)
            enriched.append(
                EnrichedLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    added_at=line.added_at,
                    name=product.name if product else "Unknown",
                    unit_price=product.unit_price if product else 0,
                    image_ref=product.image_ref if product else "",
                )
            )
        return enriched

    def _fetch_all(self, batches: List[List[str]]) -> Dict[str, ProductSnapshot]:
        logger.info(f"Fetching product details in {len(batches)} batch(es)")

        pool = ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(batches))))
        try:
            futures = [pool.submit(self.fetch_batch, batch) for batch in batches]
            products: Dict[str, ProductSnapshot] = {}
            for future in futures:
                try:
                    result = future.result(timeout=self.timeout)
                except FutureTimeoutError:
                    raise TransientStorageError("Product batch get timed out") from None
                for product in result:
                    products[product.product_id] = product
            return products
        finally:
            # do not wait on batches that are still running after a failure
            pool.shutdown(wait=False, cancel_futures=True)

"""Stage 3: persist products and rank their variants."""

from pva.products.service import (
    ProductService,
    SaveResult,
    StatusResult,
    build_variant,
    product_name_from_url,
)

__all__ = ["ProductService", "SaveResult", "StatusResult", "build_variant", "product_name_from_url"]

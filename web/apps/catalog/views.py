"""Read-only catalog endpoints: active products list, detail, featured and related."""

from django.core.paginator import Paginator
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from .models import Product
from .schemas import ProductReadDTO


def _positive_int(raw, default: int) -> int | None:
    try:
        value = int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


class ProductCollectionView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "catalog"

    def get(self, request):
        page = _positive_int(request.GET.get("page"), 1)
        page_size = _positive_int(request.GET.get("limit"), 20)
        if page is None or page_size is None:
            return Response({"detail": "VALIDATION_ERROR"}, status=status.HTTP_400_BAD_REQUEST)

        qs = Product.objects.filter(is_active=True)
        p = Paginator(qs, min(page_size, 100))
        page_obj = p.get_page(page)
        results = [
            ProductReadDTO.model_validate(prod).model_dump(mode="json", by_alias=True)
            for prod in page_obj.object_list
        ]
        return Response(
            {
                "products": results,
                "totalPages": p.num_pages,
                "currentPage": page_obj.number,
                "total": p.count,
            },
            status=200,
        )


class RetrieveProductView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "catalog"

    def get(self, request, pid):
        try:
            prod = Product.objects.get(id=pid, is_active=True)
        except Product.DoesNotExist:
            return Response({"detail": "PRODUCT_NOT_FOUND"}, status=status.HTTP_404_NOT_FOUND)
        return Response(ProductReadDTO.model_validate(prod).model_dump(mode="json", by_alias=True), status=200)


FEATURED_LIMIT = 8
RELATED_LIMIT = 4


def _product_list(qs) -> list[dict]:
    return [ProductReadDTO.model_validate(prod).model_dump(mode="json", by_alias=True) for prod in qs]


class FeaturedProductsView(APIView):
    """Newest featured products for the storefront home page."""
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "catalog"

    def get(self, request):
        qs = Product.objects.filter(is_active=True, featured=True).order_by("-created_at")[:FEATURED_LIMIT]
        return Response({"products": _product_list(qs)}, status=200)


class RelatedProductsView(APIView):
    """Newest active products sharing the category of ``pid``, excluding it."""
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "catalog"

    def get(self, request, pid):
        try:
            prod = Product.objects.get(id=pid, is_active=True)
        except Product.DoesNotExist:
            return Response({"detail": "PRODUCT_NOT_FOUND"}, status=status.HTTP_404_NOT_FOUND)
        qs = (
            Product.objects.filter(is_active=True, category=prod.category)
            .exclude(id=prod.id)
            .order_by("-created_at")[:RELATED_LIMIT]
        )
        return Response({"products": _product_list(qs)}, status=200)

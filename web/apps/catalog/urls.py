from django.urls import path
from .views import FeaturedProductsView, ProductCollectionView, RelatedProductsView, RetrieveProductView

app_name = "catalog"

urlpatterns = [
    path("", ProductCollectionView.as_view(), name="products-collection"),
    path("featured/", FeaturedProductsView.as_view(), name="products-featured"),
    path("<uuid:pid>/", RetrieveProductView.as_view(), name="products-detail"),
    path("<uuid:pid>/related/", RelatedProductsView.as_view(), name="products-related"),
]

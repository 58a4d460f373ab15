"""Image fetching and normalization."""

from .image_fetcher import FetchedImage, ImageFetcher, ImageRef, scale_to_fit

__all__ = ["FetchedImage", "ImageFetcher", "ImageRef", "scale_to_fit"]

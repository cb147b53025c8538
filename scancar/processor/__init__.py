"""Listing normalization helpers."""

from .brand import BrandInfo, infer_brand
from .normalizer import absolute_url, build_attributes, clean_multiline, clean_text, slugify

__all__ = [
    "BrandInfo",
    "absolute_url",
    "build_attributes",
    "clean_multiline",
    "clean_text",
    "infer_brand",
    "slugify",
]

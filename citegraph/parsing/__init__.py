"""Parsers for upstream bibliographic payloads."""

from .pubmed_xml import parse_pubmed_article

__all__ = ["parse_pubmed_article"]

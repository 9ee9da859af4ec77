"""Shared repository base for Supabase tables"""
from .base import BaseRepository, RecordId

__all__ = [
    'BaseRepository',
    'RecordId',
]

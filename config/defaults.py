"""
Default configuration values for vfs-sync.

Centralized defaults that can be overridden by environment variables or config files.
"""

from typing import Any, Dict

from core.models.config import BATCH_MAX_BYTES, DEFAULT_EXCLUDE_PATTERNS

# Global default settings
DEFAULT_SETTINGS = {
    # Version store
    "store": {
        "backend": "qdrant",
        "url": "${qdrant_url}",
        "path": None,
        "api_key": None,
        "timeout": 60.0,
        "collection_name": "${collection_prefix}-versions"
    },

    # Change detection and batching
    "importer": {
        "batch_max_bytes": BATCH_MAX_BYTES,
        "lookup_chunk_size": 100,
        "lookup_concurrency": 3,
        "exclude_patterns": list(DEFAULT_EXCLUDE_PATTERNS),
        "follow_symlinks": False
    }
}

CONFIG_DIR_NAME = ".vfs-sync"
CONFIG_FILE_NAME = "config.json"

# Environment variable mappings
ENV_VAR_MAPPING = {
    'VFS_SYNC_STORE_BACKEND': 'store.backend',
    'VFS_SYNC_QDRANT_URL': 'store.url',
    'VFS_SYNC_QDRANT_PATH': 'store.path',
    'VFS_SYNC_QDRANT_API_KEY': 'store.api_key',
    'VFS_SYNC_QDRANT_TIMEOUT': 'store.timeout',
    'VFS_SYNC_COLLECTION': 'store.collection_name',
    'VFS_SYNC_BATCH_MAX_BYTES': 'importer.batch_max_bytes',
    'VFS_SYNC_LOOKUP_CHUNK_SIZE': 'importer.lookup_chunk_size',
    'VFS_SYNC_LOOKUP_CONCURRENCY': 'importer.lookup_concurrency'
}

# Env values that must stay strings even when they look numeric or boolean
STRING_ENV_KEYS = {'store.api_key', 'store.collection_name', 'store.path', 'store.url'}


def get_default_sync_config() -> Dict[str, Any]:
    """Get default sync configuration template"""
    return {
        'name': '${name}',
        'root': '${root}',
        'store': dict(DEFAULT_SETTINGS['store']),
        'importer': {
            **DEFAULT_SETTINGS['importer'],
            'exclude_patterns': list(DEFAULT_SETTINGS['importer']['exclude_patterns'])
        }
    }

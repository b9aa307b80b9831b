from .vault_watcher import VaultWatcher

__all__ = ["VaultWatcher"]

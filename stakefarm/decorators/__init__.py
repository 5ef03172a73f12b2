from .checks import has_linked_wallet, is_cog_ready, is_not_locked

import discord
from redbot.core import commands


async def _refuse(ctx: commands.Context, title: str, description: str, **send_kwargs) -> bool:
    embed = discord.Embed(title=title, description=description, color=discord.Color.orange())
    embed.set_footer(text="Stake Farm - Transaction Desk")
    await ctx.send(embed=embed, **send_kwargs)
    return False


def is_not_locked():
    """Fails while the author has a transaction out for signing."""

    async def predicate(ctx: commands.Context):
        lock_helper = getattr(ctx.cog, 'lock_helper', None)
        lock = lock_helper.get_user_lock(ctx.author.id) if lock_helper else None
        if lock is None:
            return True

        return await _refuse(
            ctx,
            f"❌ Farm Locked: Pending {lock.kind.capitalize()}",
            f"{ctx.author.mention}, {lock.message}\n\n"
            f"Report it with `{ctx.prefix}farmconfirm <tx_hash>` once signed, or "
            f"`{ctx.prefix}farmcancel` to abandon it.",
        )

    return commands.check(predicate)


def has_linked_wallet():
    """Fails unless the author has linked a wallet with `farmwallet`."""

    async def predicate(ctx: commands.Context):
        wallet = getattr(ctx.cog, 'wallets', {}).get(ctx.author.id)
        if wallet is not None and wallet.connected:
            return True

        return await _refuse(
            ctx,
            "🔗 No Wallet Linked",
            f"{ctx.author.mention}, link the wallet that holds your farms first: "
            f"`{ctx.prefix}farmwallet <address>`.",
        )

    return commands.check(predicate)


def is_cog_ready():
    """
    Fails until the growth loop has loaded settings and built the ledger reader, so no command
    runs during the startup sequence.
    """

    async def predicate(ctx: commands.Context):
        cog = ctx.cog
        if getattr(cog, '_initialized', False) and getattr(cog, 'ledger_reader', None) is not None:
            return True

        return await _refuse(
            ctx,
            "⏳ Farm Initializing",
            "The farm is still connecting to the ledger. Try again in a moment.",
            delete_after=10,
        )

    return commands.check(predicate)

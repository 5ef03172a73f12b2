import asyncio
import dataclasses
import time
import traceback
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Set

import discord
from redbot.core import Config, commands, data_manager

from .decorators import has_linked_wallet, is_cog_ready, is_not_locked
from .errors import FarmError, ReconciliationStale
from .helpers import (
    TimeHelper,
    LockHelper,
    LoggingHelper,
    DataHelper,
    DiscordTransactionExecutor,
    FarmSession,
    WalletSession,
    Web3LedgerReader,
    normalize_address,
)
from .models import FarmSettings, PlotView, TransactionIntent


class StakeFarm(commands.Cog):
    """Stake Farm - plant tokens into plots, let them grow, harvest rewards and level up."""

    CURRENCY_EMOJI = "💎"
    STAGE_EMOJI = {0: "🟫", 1: "🌱", 2: "🌿", 3: "🪴", 4: "🌾"}

    def __init__(self, bot: commands.Bot):
        self._initialized = False

        self.bot = bot
        self.config = Config.get_conf(self, identifier=718293645102938475)
        self.config.register_global(log_channel_id=None, **self._settings_to_config(FarmSettings()))

        self.cog_data_path = data_manager.bundled_data_path(self)
        self.lock_helper = LockHelper()
        self.logger = LoggingHelper(bot, None)
        self.data_loader = DataHelper(self.cog_data_path, self.logger)
        self.data_loader.load_all_data()

        self.settings = FarmSettings()
        self.ledger_reader: Optional[Web3LedgerReader] = None

        self.sessions: Dict[int, FarmSession] = {}
        self.wallets: Dict[int, WalletSession] = {}
        self.executors: Dict[int, DiscordTransactionExecutor] = {}
        self.outboxes: Dict[int, List[str]] = {}
        self.notification_channels: Dict[int, int] = {}
        self._last_refresh: Dict[int, float] = {}
        self._settings_pending: Set[int] = set()

        self.growth_task = self.bot.loop.create_task(self.startup_and_growth_loop())

    def cog_unload(self):
        """Cog cleanup method."""

        if self.growth_task:
            self.growth_task.cancel()

        self.lock_helper.clear_all_locks()
        self.logger.log("Stake Farm cog systems are now offline.", "INFO")

    # --- Settings ---

    @staticmethod
    def _settings_to_config(settings: FarmSettings) -> dict:
        return {key: str(value) if isinstance(value, Decimal) else value
                for key, value in dataclasses.asdict(settings).items()}

    async def _load_settings(self):
        raw = await self.config.all()
        self.logger.log_channel_id = raw.get("log_channel_id")

        values = {}
        for f in dataclasses.fields(FarmSettings):
            if f.name not in raw:
                continue
            values[f.name] = Decimal(str(raw[f.name])) if isinstance(f.default, Decimal) else raw[f.name]

        self.settings = FarmSettings(**values)
        self.ledger_reader = Web3LedgerReader(self.settings.rpc_url, self.settings.contract_address)
        self.logger.log(f"Settings loaded. Contract {self.settings.contract_address} via {self.settings.rpc_url}.",
                        "INFO")

        self._settings_pending.update(self.sessions)
        self._apply_settings_to_sessions()

    def _apply_settings_to_sessions(self):
        """Pushes current settings into live sessions. A session with an intent in flight waits for it to resolve."""
        for user_id in list(self._settings_pending):
            session = self.sessions.get(user_id)
            if session is not None and session.pending_intent is not None:
                continue
            if session is not None:
                session.configure(self.settings, self.ledger_reader)
            self._settings_pending.discard(user_id)

    # --- Sessions ---

    def _get_session(self, user_id: int, channel_id: Optional[int] = None) -> FarmSession:
        if channel_id is not None:
            self.notification_channels[user_id] = channel_id

        session = self.sessions.get(user_id)
        if session is not None:
            return session

        wallet = self.wallets.setdefault(user_id, WalletSession())
        executor = DiscordTransactionExecutor(user_id, self.lock_helper, self.logger)
        outbox = self.outboxes.setdefault(user_id, [])

        session = FarmSession(
            self.settings,
            wallet,
            self.ledger_reader,
            executor,
            token_types=self.data_loader.token_types,
            notify=outbox.append,
            logger=self.logger,
        )
        self.executors[user_id] = executor
        self.sessions[user_id] = session
        self.logger.log(f"Session opened for user {user_id}.", "DEBUG")
        return session

    async def _flush_notifications(self, user_id: int):
        outbox = self.outboxes.get(user_id)
        if not outbox:
            return

        messages = list(outbox)
        outbox.clear()

        channel = self.bot.get_channel(self.notification_channels.get(user_id, 0))
        if not isinstance(channel, discord.abc.Messageable):
            return

        try:
            await channel.send(f"<@{user_id}> " + "\n".join(messages),
                               allowed_mentions=discord.AllowedMentions(users=True))
        except (discord.Forbidden, discord.HTTPException) as e:
            self.logger.log(f"Notification delivery to user {user_id} failed: {e}", "WARNING")

    async def _refresh_session(self, user_id: int, session: FarmSession) -> bool:
        self._last_refresh[user_id] = time.monotonic()
        try:
            return await session.refresh()
        except ReconciliationStale as e:
            self.logger.log(f"Ledger refresh for user {user_id} is stale: {e}", "WARNING")
            return False

    def _remind_pending(self, user_id: int):
        # Unsigned batches never expire; the player only gets nudged.
        self.lock_helper.touch(user_id)
        self.outboxes.setdefault(user_id, []).append(
            "A transaction is still awaiting your wallet signature. "
            "Report it with `farmconfirm <tx_hash>` or abandon it with `farmcancel`.")

    # --- Background loop ---

    async def startup_and_growth_loop(self):
        """The main background task for the cog."""

        await self.bot.wait_until_ready()
        await self._load_settings()
        await self.logger.flush_init_log_queue()

        self._initialized = True

        await self.logger.log_to_discord("Growth Loop: Startup complete. Entering main simulation cycle.", "INFO")
        loop_counter = 0
        while not self.bot.is_closed():
            try:
                now_ms = TimeHelper.get_current_timestamp_ms()
                refresh_every = self.settings.refresh_interval_s

                if self._settings_pending:
                    self._apply_settings_to_sessions()

                for user_id in self.lock_helper.expired_user_ids(self.settings.signature_reminder_s):
                    self._remind_pending(user_id)

                for user_id, session in list(self.sessions.items()):
                    session.tick(now_ms)

                    last = self._last_refresh.get(user_id, 0.0)
                    if session.refresh_requested or time.monotonic() - last >= refresh_every:
                        await self._refresh_session(user_id, session)

                    await self._flush_notifications(user_id)
            except Exception as e:
                await self.logger.log_to_discord(
                    f"Growth Loop: CRITICAL Anomaly in cycle {loop_counter}: {e}\n{traceback.format_exc()}", "CRITICAL")

            loop_counter += 1
            await asyncio.sleep(max(0.1, self.settings.tick_interval_ms / 1000))

    # --- Presentation ---

    def _describe_plot(self, view: PlotView, session: FarmSession, now_ms: int) -> str:
        slot_prefix = f"**{view.index + 1}:**"

        if not view.planted:
            return f"{slot_prefix} {self.STAGE_EMOJI[0]} Empty"

        token = session.token_types.get(view.token_type_id or "")
        token_name = token.name if token else "Stake"
        farm_tag = f" `#{view.external_farm_id}`" if view.external_farm_id is not None else " `unsynced`"

        if view.ready:
            confirmed = " ✅" if session.can_harvest(view.index) else ""
            return f"{slot_prefix} {self.STAGE_EMOJI[4]} Ready · {view.stake_amount} {token_name}{farm_tag}{confirmed}"

        remaining = TimeHelper.format_remaining(view.remaining_ms(now_ms))
        return (f"{slot_prefix} {self.STAGE_EMOJI.get(view.growth_stage, '🌱')} Stage {view.growth_stage} · "
                f"{view.stake_amount} {token_name} · {remaining} left{farm_tag}")

    @staticmethod
    def _describe_intent(intent: TransactionIntent) -> str:
        lines = []
        for call in intent.calls:
            lines.append(f"• `{call.signature}` on `{call.target}`" + (f" with value `{call.value}` wei"
                                                                         if call.value else ""))
        return "\n".join(lines)

    async def _send_farm_error(self, ctx: commands.Context, error: FarmError, title: str):
        embed = discord.Embed(title=f"❌ {title}", description=error.message, color=discord.Color.red())
        embed.set_footer(text="Stake Farm - Validation Systems")
        await ctx.send(embed=embed)

    async def _confirm_and_submit(self, ctx: commands.Context, session: FarmSession, intent: TransactionIntent,
                                  summary: str):
        """Asks the player to confirm a prepared intent, then hands it to their wallet."""

        confirm_embed = discord.Embed(
            title="📝 Transaction Confirmation Required",
            description=f"User {ctx.author.mention}, {summary}\n\n{self._describe_intent(intent)}\n\nProceed? (yes/no)",
            color=discord.Color.teal()
        )
        await ctx.send(embed=confirm_embed)

        try:
            msg = await self.bot.wait_for("message", timeout=60.0,
                                          check=lambda m: m.author == ctx.author and m.channel == ctx.channel
                                          and m.content.lower() in ["yes", "y", "no", "n"])
        except asyncio.TimeoutError:
            session.cancel()
            await ctx.send(embed=discord.Embed(title="⏰ Transaction Timed Out",
                                               description="Confirmation not received. Nothing was submitted.",
                                               color=discord.Color.light_grey()))
            return

        if msg.content.lower() in ["no", "n"]:
            session.cancel()
            await ctx.send(embed=discord.Embed(title="🚫 Transaction Cancelled",
                                               description="Nothing was submitted and your farm is unchanged.",
                                               color=discord.Color.light_grey()))
            return

        try:
            session.submit()
        except FarmError as e:
            await self._send_farm_error(ctx, e, "Submission Failed")
            return

        embed = discord.Embed(
            title="🔏 Awaiting Wallet Signature",
            description=f"Sign the call(s) below from your linked wallet "
                        f"`{session.session_provider.current_address}`:\n\n{self._describe_intent(intent)}\n\n"
                        f"Then run `{ctx.prefix}farmconfirm <tx_hash>`, or `{ctx.prefix}farmcancel` to abandon it.",
            color=discord.Color.blue()
        )
        embed.set_footer(text="Stake Farm - Transaction Desk")
        await ctx.send(embed=embed)
        await self._flush_notifications(ctx.author.id)

    # --- Player commands ---

    @commands.command(name="farm")
    @is_cog_ready()
    async def farm_command(self, ctx: commands.Context):
        """Display your plots, level and balance."""

        session = self._get_session(ctx.author.id, ctx.channel.id)
        progress = session.store.progress_view()
        now_ms = TimeHelper.get_current_timestamp_ms()

        lines = [self._describe_plot(view, session, now_ms) for view in session.store.plot_views()]
        half = len(lines) // 2

        embed = discord.Embed(color=discord.Color.blue())
        embed.set_author(name=f"{ctx.author.display_name}: Stake Farm", icon_url=ctx.author.display_avatar.url)

        next_level_xp = session.level_engine.required_xp(progress.level)
        wallet = session.session_provider.current_address or "Not linked"
        synced = TimeHelper.format_est(session.last_synced_ms) if session.last_synced_ms else "Never"
        embed.add_field(
            name="📈 Progress",
            value=f"**Level:** {progress.level} ({progress.experience}/{next_level_xp} XP)\n"
                  f"**Balance:** {progress.token_balance} {self.CURRENCY_EMOJI}\n"
                  f"**Total Staked:** {session.total_staked()}\n"
                  f"**Wallet:** `{wallet}`\n"
                  f"**Last Sync:** {synced}",
            inline=False
        )
        embed.add_field(name="🌾 Plots", value="\n".join(lines[:half]), inline=True)
        embed.add_field(name="🌾 Plots", value="\n".join(lines[half:]), inline=True)

        if session.stale:
            embed.add_field(name="⚠️ Advisory", value="Ledger data could not be refreshed; showing last known state.",
                            inline=False)

        embed.set_footer(text="Stake Farm - Plot Monitoring Systems")
        await ctx.send(embed=embed)

    @commands.command(name="farmwallet")
    @is_cog_ready()
    @is_not_locked()
    async def farmwallet_command(self, ctx: commands.Context, address: str):
        """Link the wallet whose on-chain farms this session mirrors."""

        checksum = normalize_address(address)
        if checksum is None:
            await ctx.send(embed=discord.Embed(title="❌ Invalid Address",
                                               description=f"`{address}` is not a valid wallet address.",
                                               color=discord.Color.red()))
            return

        session = self._get_session(ctx.author.id, ctx.channel.id)
        self.wallets[ctx.author.id].address = checksum
        synced = await self._refresh_session(ctx.author.id, session)

        desc = f"Wallet `{checksum}` linked to your farm."
        desc += " Ledger data synced." if synced else " Ledger sync failed; it will be retried automatically."
        await ctx.send(embed=discord.Embed(title="🔗 Wallet Linked", description=desc,
                                           color=discord.Color.green()))
        await self._flush_notifications(ctx.author.id)

    @commands.command(name="tokens")
    @is_cog_ready()
    async def tokens_command(self, ctx: commands.Context):
        """List plantable tokens and their unlock levels."""

        session = self._get_session(ctx.author.id, ctx.channel.id)
        level = session.store.progress.level

        lines = []
        for token in self.data_loader.token_types:
            status = "✅" if level >= token.unlock_level else f"🔒 Level {token.unlock_level}"
            lines.append(f"**{token.name}** (`{token.id}`) · {token.growth_time_ms // 1000}s · "
                         f"{token.rarity} · {status}\n*{token.description}*")

        embed = discord.Embed(title="🪙 Token Catalog", description="\n".join(lines), color=discord.Color.blue())
        embed.set_footer(text="Stake Farm - Token Registry")
        await ctx.send(embed=embed)

    @commands.command(name="plant")
    @is_cog_ready()
    @is_not_locked()
    @has_linked_wallet()
    async def plant_command(self, ctx: commands.Context, plot: int, amount: str, token_id: Optional[str] = None):
        """Stake tokens into an empty plot."""

        session = self._get_session(ctx.author.id, ctx.channel.id)
        try:
            intent = session.prepare_plant(plot - 1, amount, token_id)
        except FarmError as e:
            await self._send_farm_error(ctx, e, "Planting Protocol Error")
            return

        await self._confirm_and_submit(ctx, session, intent,
                                       f"stake **{intent.amount}** into plot **{plot}**.")

    @commands.command(name="stack")
    @is_cog_ready()
    @is_not_locked()
    @has_linked_wallet()
    async def stack_command(self, ctx: commands.Context, plot: int, amount: str):
        """Add stake to a growing plot. Each stack shortens the remaining growth time."""

        session = self._get_session(ctx.author.id, ctx.channel.id)
        try:
            intent = session.prepare_stack(plot - 1, amount)
        except FarmError as e:
            await self._send_farm_error(ctx, e, "Stacking Protocol Error")
            return

        await self._confirm_and_submit(ctx, session, intent,
                                       f"stack **{intent.amount}** onto plot **{plot}** (farm `#{intent.farm_id}`).")

    @commands.command(name="harvest")
    @is_cog_ready()
    @is_not_locked()
    @has_linked_wallet()
    async def harvest_command(self, ctx: commands.Context, plot: int):
        """Harvest a mature plot."""

        session = self._get_session(ctx.author.id, ctx.channel.id)
        try:
            intent = session.prepare_harvest(plot - 1)
        except FarmError as e:
            await self._send_farm_error(ctx, e, "Harvest Protocol Error")
            return

        await self._confirm_and_submit(ctx, session, intent,
                                       f"harvest plot **{plot}** (farm `#{intent.farm_id}`).")

    @commands.command(name="farmconfirm")
    @is_cog_ready()
    async def farmconfirm_command(self, ctx: commands.Context, tx_hash: str):
        """Report the hash of the transaction you signed."""

        executor = self.executors.get(ctx.author.id)
        if executor is None or executor.pending is None:
            await ctx.send(embed=discord.Embed(title="ℹ️ Nothing Pending",
                                               description="You have no transaction awaiting confirmation.",
                                               color=discord.Color.light_grey()))
            return

        try:
            receipt = await self.ledger_reader.get_receipt(tx_hash)
        except Exception as e:
            self.logger.log(f"Receipt lookup for {tx_hash} failed: {e}", "WARNING")
            await ctx.send(embed=discord.Embed(title="❌ Receipt Lookup Failed",
                                               description=f"Could not query the ledger: {e}\nTry again shortly.",
                                               color=discord.Color.red()))
            return

        if receipt is None:
            await ctx.send(embed=discord.Embed(title="⏳ Not Mined Yet",
                                               description=f"`{tx_hash}` was not found on-chain yet. "
                                                           f"Run this command again once it is mined.",
                                               color=discord.Color.orange()))
            return

        wallet = self.wallets[ctx.author.id].address if ctx.author.id in self.wallets else None
        mismatch = receipt.mismatch(wallet, executor.pending.target or self.settings.contract_address)
        if mismatch:
            self.logger.log(f"User {ctx.author.id} reported foreign transaction {tx_hash}: {mismatch}.", "WARNING")
            await ctx.send(embed=discord.Embed(title="❌ Transaction Not Recognised",
                                               description=f"`{tx_hash}` {mismatch}. Your pending transaction is "
                                                           f"still waiting; report the hash you signed for it.",
                                               color=discord.Color.red()))
            return

        if receipt.succeeded:
            executor.resolve_success()
            embed = discord.Embed(title="✅ Transaction Confirmed", color=discord.Color.green())
        else:
            executor.resolve_error(f"Transaction {tx_hash} reverted on-chain.")
            embed = discord.Embed(title="❌ Transaction Reverted", color=discord.Color.red(),
                                  description="Your farm was restored to its state before the transaction.")

        await ctx.send(embed=embed)
        await self._flush_notifications(ctx.author.id)

    @commands.command(name="farmcancel")
    @is_cog_ready()
    async def farmcancel_command(self, ctx: commands.Context):
        """Abandon a transaction you have not signed."""

        session = self.sessions.get(ctx.author.id)
        executor = self.executors.get(ctx.author.id)

        if session is not None and session.cancel():
            desc = "The prepared transaction was dismissed."
        elif executor is not None and executor.resolve_error("Transaction cancelled by user."):
            desc = "The pending transaction was abandoned and your farm restored."
        else:
            desc = "You have no pending transaction."

        await ctx.send(embed=discord.Embed(title="🚫 Transaction Cancelled", description=desc,
                                           color=discord.Color.light_grey()))
        await self._flush_notifications(ctx.author.id)

    @commands.command(name="farmsync")
    @is_cog_ready()
    @has_linked_wallet()
    async def farmsync_command(self, ctx: commands.Context):
        """Refresh your farm from the ledger now."""

        session = self._get_session(ctx.author.id, ctx.channel.id)
        if await self._refresh_session(ctx.author.id, session):
            embed = discord.Embed(title="🔄 Farm Synced", description="Plots and progress refreshed from the ledger.",
                                  color=discord.Color.green())
        else:
            embed = discord.Embed(title="⚠️ Sync Failed",
                                  description="The ledger could not be reached. Showing last known state.",
                                  color=discord.Color.orange())
        await ctx.send(embed=embed)

    # --- Admin commands ---

    @commands.group(name="farmadmin")
    @is_cog_ready()
    @commands.is_owner()
    async def cmd_admin_group(self, ctx: commands.Context):
        """Base command for owner-only Stake Farm configuration."""
        pass

    @cmd_admin_group.command(name="settings")
    async def admin_settings_command(self, ctx: commands.Context):
        """Show the active farm settings."""

        lines = [f"**{key}:** `{value}`" for key, value in self._settings_to_config(self.settings).items()]
        embed = discord.Embed(title="⚙️ Stake Farm Settings", description="\n".join(lines),
                              color=discord.Color.blue())
        embed.set_footer(text="Live sessions pick up changes once their pending transaction resolves.")
        await ctx.send(embed=embed)

    @cmd_admin_group.command(name="contract")
    async def admin_contract_command(self, ctx: commands.Context, address: str):
        """Set the farm manager contract address."""

        checksum = normalize_address(address)
        if checksum is None:
            await ctx.send(embed=discord.Embed(title="❌ Invalid Input",
                                               description=f"`{address}` is not a valid contract address.",
                                               color=discord.Color.red()))
            return

        await self.config.contract_address.set(checksum)
        await self._load_settings()
        await ctx.send(embed=discord.Embed(title="✅ Contract Updated", description=f"Now using `{checksum}`.",
                                           color=discord.Color.green()))

    @cmd_admin_group.command(name="rpc")
    async def admin_rpc_command(self, ctx: commands.Context, url: str):
        """Set the JSON-RPC endpoint used for ledger reads."""

        if not url.startswith(("http://", "https://")):
            await ctx.send(embed=discord.Embed(title="❌ Invalid Input", description="RPC URL must be http(s).",
                                               color=discord.Color.red()))
            return

        await self.config.rpc_url.set(url)
        await self._load_settings()
        await ctx.send(embed=discord.Embed(title="✅ RPC Updated", description=f"Now using `{url}`.",
                                           color=discord.Color.green()))

    @cmd_admin_group.command(name="logchannel")
    async def admin_logchannel_command(self, ctx: commands.Context, channel: discord.TextChannel):
        """Set the channel that receives farm logs."""

        await self.config.log_channel_id.set(channel.id)
        self.logger.log_channel_id = channel.id
        await ctx.send(embed=discord.Embed(title="✅ Log Channel Updated", description=f"Logging to {channel.mention}.",
                                           color=discord.Color.green()))

    @cmd_admin_group.command(name="minstake")
    async def admin_minstake_command(self, ctx: commands.Context, amount: str):
        """Set the minimum accepted stake amount."""

        try:
            value = Decimal(amount)
        except InvalidOperation:
            value = None

        if value is None or not value.is_finite() or value <= 0:
            await ctx.send(embed=discord.Embed(title="❌ Invalid Input",
                                               description="Minimum stake must be a positive number.",
                                               color=discord.Color.red()))
            return

        await self.config.min_stake.set(str(value))
        await self._load_settings()
        await ctx.send(embed=discord.Embed(title="✅ Minimum Stake Updated", description=f"Now `{value}`.",
                                           color=discord.Color.green()))

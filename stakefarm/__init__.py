async def setup(bot):
    from .stakefarm import StakeFarm

    await bot.add_cog(StakeFarm(bot))

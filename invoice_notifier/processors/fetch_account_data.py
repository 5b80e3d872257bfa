from invoice_notifier.domain.jobs import AccountBalance, FetchAccountDataJob
from invoice_notifier.processors.context import JobContext


async def process_fetch_account_data(ctx: JobContext) -> AccountBalance:
    data: FetchAccountDataJob = ctx.data

    await ctx.log(f"Starting fetch-account-data for contract: {data.account_contract}")
    await ctx.update_progress(10)

    try:
        provider = ctx.registry.resolve(data.provider)
        await ctx.log(f"Provider {data.provider} initialized")
        await ctx.update_progress(30)

        await ctx.log(f"Fetching account balance from {data.provider}")
        result = await provider.fetch_account_data(data.account_contract)
        await ctx.update_progress(90)

        await ctx.log(f"Account data fetched successfully. Balance: {result.balance}")
        await ctx.update_progress(100)
        return result
    except Exception as exc:
        await ctx.log(f"Error fetching account data: {exc}")
        raise

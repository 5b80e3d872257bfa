from invoice_notifier.domain.jobs import FetchInvoiceJob, InvoiceList
from invoice_notifier.processors.context import JobContext


async def process_fetch_invoice(ctx: JobContext) -> InvoiceList:
    data: FetchInvoiceJob = ctx.data
    status = data.status

    await ctx.log(f"Starting fetch-invoice for contract: {data.account_contract}, status: {status}")
    await ctx.update_progress(10)

    try:
        provider = ctx.registry.resolve(data.provider)
        await ctx.log(f"Provider {data.provider} initialized")
        await ctx.update_progress(30)

        await ctx.log(f"Fetching {status} invoices from {data.provider}")
        result = await provider.fetch_invoices(data.account_contract, status)
        await ctx.update_progress(90)

        await ctx.log(f"Invoices fetched successfully. Count: {result.count}")
        await ctx.update_progress(100)
        return result
    except Exception as exc:
        await ctx.log(f"Error fetching invoices: {exc}")
        raise

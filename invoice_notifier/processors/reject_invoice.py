from invoice_notifier.domain.jobs import RejectInvoiceJob, RejectionResult
from invoice_notifier.processors.context import JobContext


async def process_reject_invoice(ctx: JobContext) -> RejectionResult:
    data: RejectInvoiceJob = ctx.data

    await ctx.log(f"Starting reject-invoice for invoice: {data.invoice_number}, reason: {data.reason}")
    await ctx.update_progress(10)

    try:
        provider = ctx.registry.resolve(data.provider)
        await ctx.log(f"Provider {data.provider} initialized")
        await ctx.update_progress(30)

        await ctx.log(f"Rejecting invoice {data.invoice_number}")
        result = await provider.reject_invoice(data.account_contract, data.invoice_number, data.reason)
        await ctx.update_progress(90)

        outcome = "successful" if result.success else "failed"
        await ctx.log(f"Invoice rejection {outcome}")
        await ctx.update_progress(100)
        return result
    except Exception as exc:
        await ctx.log(f"Error rejecting invoice: {exc}")
        raise

from invoice_notifier.domain.jobs import PayInvoiceJob, PaymentResult
from invoice_notifier.processors.context import JobContext


async def process_pay_invoice(ctx: JobContext) -> PaymentResult:
    data: PayInvoiceJob = ctx.data

    await ctx.log(f"Starting pay-invoice for invoice: {data.invoice_number}, amount: {data.amount}")
    await ctx.update_progress(10)

    try:
        provider = ctx.registry.resolve(data.provider)
        await ctx.log(f"Provider {data.provider} initialized")
        await ctx.update_progress(30)

        await ctx.log(f"Processing payment for invoice {data.invoice_number}")
        result = await provider.pay_invoice(data.account_contract, data.invoice_number, data.amount)
        await ctx.update_progress(90)

        outcome = "successful" if result.success else "failed"
        await ctx.log(f"Payment {outcome}. Transaction ID: {result.transaction_id}")
        await ctx.update_progress(100)
        return result
    except Exception as exc:
        await ctx.log(f"Error paying invoice: {exc}")
        raise

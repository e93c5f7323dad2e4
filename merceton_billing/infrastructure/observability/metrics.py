"""Prometheus metrics for order fees, number allocation and platform invoicing"""

from prometheus_client import Counter, Histogram

# Order metrics
orders_placed_counter = Counter(
    "merceton_orders_placed_total",
    "Total orders placed",
)

platform_fee_counter = Counter(
    "merceton_platform_fee_minor_total",
    "Platform fees charged, in minor units",
)

fee_bucket_counter = Counter(
    "merceton_platform_fee_bucket",
    "Orders by platform fee bucket",
    ["bucket"],  # waived, under_cap, capped
)

# Allocation metrics
allocation_latency_histogram = Histogram(
    "merceton_allocation_latency_seconds",
    "Time spent allocating order/invoice numbers",
    ["allocator"],  # order | invoice
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

allocation_failure_counter = Counter(
    "merceton_allocation_failures_total",
    "Failed number allocations",
    ["allocator", "reason"],  # reason: contention | error
)

# Invoicing metrics
invoices_issued_counter = Counter(
    "merceton_platform_invoices_issued_total",
    "Platform invoices issued by the billing job",
)

payout_outcome_counter = Counter(
    "merceton_payouts_total",
    "Weekly payout decisions per invoice",
    ["outcome"],  # created | held | skipped | failed
)

payout_amount_counter = Counter(
    "merceton_payout_amount_minor_total",
    "Minor units scheduled for payout to merchants",
)

webhook_latency_histogram = Histogram(
    "billing_webhook_latency_seconds",
    "Billing event webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "billing_webhook_failures_total",
    "Failed billing event webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_order_fee(platform_fee_minor: int, cap_minor: int) -> None:
    """Record fee metrics for monitoring how often the cap applies"""
    orders_placed_counter.inc()
    platform_fee_counter.inc(platform_fee_minor)

    if platform_fee_minor == 0:
        bucket = "waived"
    elif cap_minor > 0 and platform_fee_minor >= cap_minor:
        bucket = "capped"
    else:
        bucket = "under_cap"

    fee_bucket_counter.labels(bucket=bucket).inc()

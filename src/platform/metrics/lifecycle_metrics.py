from prometheus_client import Counter, Histogram


class LifecycleMetrics:
    """
    Checkout & ticket lifecycle metrics

    Counts every capacity movement and state transition the engine performs so
    oversell pressure, sweep backlog and gateway health are visible per event.
    """

    def __init__(self) -> None:
        # ========== Inventory / Reservation ==========
        self.reservation_holds = Counter(
            'reservation_holds_total',
            'Reservation hold attempts',
            ['result'],  # held / insufficient
        )
        self.reservation_releases = Counter(
            'reservation_releases_total',
            'Reservations released back to inventory',
            ['reason'],  # cancel / expired / checkout_expired
        )

        # ========== Checkout / Order ==========
        self.checkout_transitions = Counter(
            'checkout_transitions_total',
            'Checkout state transitions',
            ['status'],
        )
        self.order_payments_applied = Counter(
            'order_payments_applied_total',
            'Payments applied to orders',
            ['resulting_status'],
        )

        # ========== Gateways ==========
        self.gateway_calls = Counter(
            'payment_gateway_calls_total',
            'Calls made to payment gateways',
            ['gateway', 'operation', 'result'],
        )
        self.gateway_call_duration = Histogram(
            'payment_gateway_call_duration_seconds',
            'Payment gateway call latency',
            ['gateway', 'operation'],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
        )

        # ========== Tickets ==========
        self.tickets_issued = Counter(
            'tickets_issued_total', 'Tickets minted', ['credential_format']
        )
        self.validations = Counter(
            'ticket_validations_total',
            'Admission checks',
            ['method', 'result'],
        )
        self.transfers = Counter('ticket_transfers_total', 'Transfer transitions', ['status'])
        self.refunds = Counter('ticket_refunds_total', 'Refund transitions', ['status'])

        # ========== Sweeps ==========
        self.sweep_processed = Counter(
            'sweep_processed_total',
            'Rows processed by background sweeps',
            ['sweep'],
        )

    # ========== Helper Methods ==========

    def record_hold(self, *, result: str) -> None:
        self.reservation_holds.labels(result=result).inc()

    def record_release(self, *, reason: str, count: int = 1) -> None:
        self.reservation_releases.labels(reason=reason).inc(count)

    def record_gateway_call(
        self, *, gateway: str, operation: str, result: str, duration: float
    ) -> None:
        self.gateway_calls.labels(gateway=gateway, operation=operation, result=result).inc()
        self.gateway_call_duration.labels(gateway=gateway, operation=operation).observe(duration)

    def record_validation(self, *, method: str, result: str) -> None:
        self.validations.labels(method=method, result=result).inc()

    def record_sweep(self, *, sweep: str, processed: int) -> None:
        if processed:
            self.sweep_processed.labels(sweep=sweep).inc(processed)


# Global metrics instance
metrics = LifecycleMetrics()

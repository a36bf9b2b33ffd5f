"""Console output formatting."""

from stakevue_state.constants import SOURCE_DEFAULT
from stakevue_state.formatters import format_cspr, iso_from_ms, iso_utc, short_key
from stakevue_state.models import DelegationSnapshot, ProtocolStats, WithdrawalPhase, WithdrawalsReport

_PHASE_EMOJI = {
    WithdrawalPhase.REQUESTED: "📝",
    WithdrawalPhase.UNBONDING: "⏳",
    WithdrawalPhase.READY: "✅",
    WithdrawalPhase.CLAIMED: "📦",
}


def _print_header(title: str, resolved_at, source: str, state_root: str | None) -> None:
    print("=" * 70)
    print(title)
    root = short_key(state_root) if state_root else "n/a"
    print(f"   🕐 {iso_utc(resolved_at)}  •  source={source}  •  stateRoot={root}")
    print("=" * 70)


def _print_footer(source: str, error: str | None, debug) -> None:
    if source == SOURCE_DEFAULT:
        print("\n⚠️  No source answered; showing default values.")
    if error:
        print(f"   Error: {error}")
    if debug:
        print("\n🔍 Resolution attempts:")
        for attempt in debug:
            mark = "✅" if attempt["succeeded"] else "❌"
            print(f"   {mark} {attempt['strategy']}: {attempt['diagnostic']}")
    print("")


def print_protocol_stats(stats: ProtocolStats) -> None:
    """Print pool, supply and exchange rate."""
    _print_header("📊 STAKEVUE PROTOCOL STATS", stats.resolved_at, stats.source, stats.state_root)
    print(f"   💱 Exchange rate: 1 stCSPR = {stats.exchange_rate_formatted} CSPR")
    print(f"   💰 Total pool:    {format_cspr(stats.total_pool_motes, decimals=2, approx=True)}")
    print(f"   🪙 stCSPR supply: {format_cspr(stats.total_supply_motes, decimals=2, approx=True, unit='stCSPR')}")
    print(f"   📜 Contract:      {short_key(stats.contract_package_hash)}")
    _print_footer(stats.source, stats.error, stats.debug)


def print_withdrawals(report: WithdrawalsReport) -> None:
    """Print an account's withdrawal requests, oldest first."""
    _print_header(f"💸 WITHDRAWALS of {short_key(report.account)}", report.resolved_at, report.source, report.state_root)
    if not report.withdrawals:
        print("   No withdrawal requests found.")
    for w in report.withdrawals:
        r = w.request
        print(f"\n{_PHASE_EMOJI[w.phase]} Request #{r.request_id}  •  {w.phase.value}")
        print("   " + "─" * 50)
        print(f"   Amount:    {format_cspr(r.amount_motes)}")
        print(f"   Requested: {iso_from_ms(r.requested_at) or r.requested_at}")
        if not w.is_claimed:
            print(f"   Ready at:  {iso_from_ms(w.unbonding_complete_ms) or 'unknown'}")
    ready = [w for w in report.withdrawals if w.is_ready]
    if ready:
        total = sum(w.request.amount_motes for w in ready)
        print(f"\n   🎉 Claimable now: {format_cspr(total)} in {len(ready)} request(s)")
    _print_footer(report.source, report.error, report.debug)


def print_delegations(snapshot: DelegationSnapshot) -> None:
    """Print per-validator delegations in configured order."""
    _print_header("🏛️  VALIDATOR DELEGATIONS", snapshot.resolved_at, snapshot.source, snapshot.state_root)
    for d in snapshot.delegations:
        marker = "🟢" if d.is_active else "⚪"
        print(f"   {marker} {short_key(d.validator_public_key)}  {format_cspr(d.delegated_amount_motes, decimals=2)}")
    print("   " + "─" * 50)
    print(f"   Total delegated: {format_cspr(snapshot.total_delegated_motes, decimals=2)}")
    print(f"   Active validators: {snapshot.validator_count}/{len(snapshot.delegations)}")
    _print_footer(snapshot.source, snapshot.error, snapshot.debug)

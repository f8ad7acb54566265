from stylecheck.models.evaluation import CapReason, ConfidenceTier, FeatureSignals, GateResult, HardFailReason


def check_hard_fail(features: FeatureSignals, is_shoes: bool) -> HardFailReason | None:
    """Return the first hard-fail reason that applies, checked in a fixed order."""
    f, s, t, u = features.formality, features.style, features.texture, features.usage

    if f.known and u.known and f.value == -2 and u.value <= -1:
        return HardFailReason.FORMALITY_CLASH_WITH_USAGE
    if s.known and u.known and s.value == -2 and u.value <= -1:
        return HardFailReason.STYLE_OPPOSITION_NO_OVERLAP
    if is_shoes and t.known and f.known and t.value == -2 and f.value <= -1:
        return HardFailReason.SHOES_TEXTURE_FORMALITY_CLASH
    return None


def compute_cap_reasons(features: FeatureSignals, is_shoes: bool) -> tuple[CapReason, ...]:
    """Collect soft tensions. Order is stable so evaluations hash identically."""
    c, s, f, t, u = features.color, features.style, features.formality, features.texture, features.usage
    reasons: list[CapReason] = []

    if f.known and f.value <= 0:
        reasons.append(CapReason.FORMALITY_TENSION)
    if s.known and s.value <= -2:
        reasons.append(CapReason.STYLE_TENSION)
    if c.known and c.value <= -1:
        reasons.append(CapReason.COLOR_TENSION)
    if t.known and t.value == -2:
        reasons.append(CapReason.TEXTURE_CLASH)
    if u.known and u.value == -2:
        reasons.append(CapReason.USAGE_MISMATCH)
    if is_shoes and ((f.known and f.value <= -1) or (s.known and s.value <= -1)):
        reasons.append(CapReason.SHOES_CONFIDENCE_DAMPEN)
    if not s.known and not t.known:
        reasons.append(CapReason.MISSING_KEY_SIGNAL)

    return tuple(reasons)


def evaluate_gates(features: FeatureSignals, is_shoes: bool) -> GateResult:
    hard_fail = check_hard_fail(features, is_shoes)
    if hard_fail is not None:
        return GateResult(
            forced_tier=ConfidenceTier.LOW,
            hard_fail_reason=hard_fail,
            max_tier=ConfidenceTier.LOW,
            cap_reasons=(),
        )

    cap_reasons = compute_cap_reasons(features, is_shoes)
    return GateResult(
        max_tier=ConfidenceTier.MEDIUM if cap_reasons else ConfidenceTier.HIGH,
        cap_reasons=cap_reasons,
    )

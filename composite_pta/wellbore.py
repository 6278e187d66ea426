"""Wellbore storage and skin in Laplace space."""


def apply_storage_and_skin(pf: float, z: float, cD: float, skin: float) -> float:
    """Apply wellbore storage ``cD`` and skin to a Laplace-space pressure.

    pf' = (z pf + S) / (z + cD z^2 (z pf + S))

    The transform is skipped when both ``cD`` and ``skin`` are negligible, or
    when the denominator is numerically zero.

    Args:
        pf: Laplace-space sandface pressure
        z: Laplace variable
        cD: Dimensionless wellbore storage
        skin: Skin factor (may be negative)

    Returns:
        Laplace-space wellbore pressure
    """
    if cD <= 1e-12 and abs(skin) <= 1e-12:
        return pf
    num = z * pf + skin
    den = z + cD * z * z * num
    if abs(den) > 1e-100:
        return num / den
    return pf

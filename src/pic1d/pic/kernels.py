"""Numba-accelerated particle kernels: deposition, interpolation and push.

Grid layout (periodic, ``nx`` points):

- nodes ``x_i = i * dx``: Ey, Ez, Bx, rho, Jy, Jz
- half nodes ``x_{i+1/2}``: Ex, By, Bz, Jx

Particles carry a cell index ``ix`` and an offset ``x`` in [0, 1). All
grid <-> particle transfers use the same linear shape: weights
``(1 - x, x)`` on nodes ``ix`` and ``ix + 1``, or on the two bounding half
nodes for staggered quantities.

Units are normalized (c = eps0 = 1), so the Boris update uses
``q/m = 1/m_q`` and the current is in the same density units as rho.
"""

from __future__ import annotations

import numpy as np
from numba import njit

# Particle boundary policies
PERIODIC = 0
OPEN = 1
REFLECTIVE = 2

BOUNDARY_CODES = {"periodic": PERIODIC, "open": OPEN, "reflective": REFLECTIVE}

# Largest double below 1.0
_ONE_MINUS = 1.0 - 2.0**-53


# =====================================================================
# Numba kernels
# =====================================================================

@njit(cache=True)
def _deposit_charge_kernel(
    ix: np.ndarray,
    x: np.ndarray,
    count: int,
    q: float,
    rho: np.ndarray,
) -> None:
    """Linear charge deposition onto the nodes (in place)."""
    nx = rho.shape[0]
    for i in range(count):
        c = ix[i]
        c1 = c + 1
        if c1 == nx:
            c1 = 0
        rho[c] += q * (1.0 - x[i])
        rho[c1] += q * x[i]


@njit(cache=True)
def _deposit_segment(
    J: np.ndarray,
    c: int,
    s0: float,
    s1: float,
    frac: float,
    qdx_dt: float,
    qvy: float,
    qvz: float,
) -> None:
    """Deposit the current of one in-cell trajectory segment."""
    nx = J.shape[1]
    if c < 0:
        c += nx
    elif c >= nx:
        c -= nx
    c1 = c + 1
    if c1 == nx:
        c1 = 0

    # Jx at half node c+1/2: flux carried between nodes c and c+1
    J[0, c] += qdx_dt * (s1 - s0)

    # Jy, Jz at the segment midpoint, weighted by the segment time fraction
    sm = 0.5 * (s0 + s1)
    J[1, c] += qvy * frac * (1.0 - sm)
    J[1, c1] += qvy * frac * sm
    J[2, c] += qvz * frac * (1.0 - sm)
    J[2, c1] += qvz * frac * sm


@njit(cache=True)
def _deposit_current_kernel(
    ix: np.ndarray,
    x: np.ndarray,
    u: np.ndarray,
    count: int,
    q: float,
    dt: float,
    dx: float,
    boundary: int,
    J: np.ndarray,
) -> None:
    """Charge-conserving current deposition for the last particle step.

    The old position is ``x - u_x * dt / dx``; a trajectory that crossed a
    cell edge is split into one segment per cell. With reflective walls a
    particle in an edge cell whose old position lies beyond the wall was
    mirrored by the push: its real path runs from the mirror image of that
    old position to the wall and back, all inside the edge cell.
    """
    nx = J.shape[1]
    dt_dx = dt / dx
    qdx_dt = q * dx / dt
    reflective = boundary == REFLECTIVE

    for i in range(count):
        c = ix[i]
        xb = x[i]
        xa = xb - u[i, 0] * dt_dx
        qvy = q * u[i, 1]
        qvz = q * u[i, 2]

        if xa < 0.0:
            frac = -xa / (xb - xa)
            if reflective and c == 0:
                # Bounced off the left wall
                _deposit_segment(J, c, -xa, 0.0, frac, qdx_dt, qvy, qvz)
            else:
                # Came from the left neighbour
                _deposit_segment(J, c - 1, xa + 1.0, 1.0, frac, qdx_dt, qvy, qvz)
            _deposit_segment(J, c, 0.0, xb, 1.0 - frac, qdx_dt, qvy, qvz)
        elif xa >= 1.0:
            frac = (xa - 1.0) / (xa - xb)
            if reflective and c == nx - 1:
                # Bounced off the right wall
                _deposit_segment(J, c, 2.0 - xa, 1.0, frac, qdx_dt, qvy, qvz)
            else:
                # Came from the right neighbour
                _deposit_segment(J, c + 1, xa - 1.0, 0.0, frac, qdx_dt, qvy, qvz)
            _deposit_segment(J, c, 1.0, xb, 1.0 - frac, qdx_dt, qvy, qvz)
        else:
            _deposit_segment(J, c, xa, xb, 1.0, qdx_dt, qvy, qvz)


@njit(cache=True)
def _field_at(
    c: int,
    x: float,
    E: np.ndarray,
    B: np.ndarray,
) -> tuple[float, float, float, float, float, float]:
    """Linear interpolation of E and B at one particle."""
    nx = E.shape[1]

    # Node quantities
    c1 = c + 1
    if c1 == nx:
        c1 = 0
    w1 = x
    w0 = 1.0 - x

    # Half-node quantities: shift the offset by half a cell
    h = x - 0.5
    ch = c
    if h < 0.0:
        h += 1.0
        ch = c - 1
        if ch < 0:
            ch += nx
    ch1 = ch + 1
    if ch1 == nx:
        ch1 = 0
    h1 = h
    h0 = 1.0 - h

    ex = h0 * E[0, ch] + h1 * E[0, ch1]
    ey = w0 * E[1, c] + w1 * E[1, c1]
    ez = w0 * E[2, c] + w1 * E[2, c1]
    bx = w0 * B[0, c] + w1 * B[0, c1]
    by = h0 * B[1, ch] + h1 * B[1, ch1]
    bz = h0 * B[2, ch] + h1 * B[2, ch1]
    return ex, ey, ez, bx, by, bz


@njit(cache=True)
def _interpolate_kernel(
    ix: np.ndarray,
    x: np.ndarray,
    count: int,
    E: np.ndarray,
    B: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    Ep = np.empty((count, 3), dtype=np.float64)
    Bp = np.empty((count, 3), dtype=np.float64)
    for i in range(count):
        ex, ey, ez, bx, by, bz = _field_at(ix[i], x[i], E, B)
        Ep[i, 0] = ex
        Ep[i, 1] = ey
        Ep[i, 2] = ez
        Bp[i, 0] = bx
        Bp[i, 1] = by
        Bp[i, 2] = bz
    return Ep, Bp


@njit(cache=True)
def _advance_kernel(
    ix: np.ndarray,
    x: np.ndarray,
    u: np.ndarray,
    count: int,
    E: np.ndarray,
    B: np.ndarray,
    m_q: float,
    dt: float,
    dx: float,
    boundary: int,
    keep: np.ndarray,
) -> float:
    """Interpolate, Boris push and move every particle (in place).

    Returns:
        Sum of 0.5*|v|^2 with v the time-centred velocity (after the first
        half electric kick).
    """
    nx = E.shape[1]
    tem = 0.5 * dt / m_q
    dt_dx = dt / dx
    energy = 0.0

    for i in range(count):
        ex, ey, ez, bx, by, bz = _field_at(ix[i], x[i], E, B)
        ex *= tem
        ey *= tem
        ez *= tem
        bx *= tem
        by *= tem
        bz *= tem

        # Half-acceleration from E
        vmx = u[i, 0] + ex
        vmy = u[i, 1] + ey
        vmz = u[i, 2] + ez

        energy += 0.5 * (vmx * vmx + vmy * vmy + vmz * vmz)

        # v' = v_minus + v_minus x t
        vpx = vmx + (vmy * bz - vmz * by)
        vpy = vmy + (vmz * bx - vmx * bz)
        vpz = vmz + (vmx * by - vmy * bx)

        # v_plus = v_minus + v' x s, s = 2t / (1 + |t|^2)
        otsq = 2.0 / (1.0 + bx * bx + by * by + bz * bz)
        sx = bx * otsq
        sy = by * otsq
        sz = bz * otsq
        vx = vmx + (vpy * sz - vpz * sy)
        vy = vmy + (vpz * sx - vpx * sz)
        vz = vmz + (vpx * sy - vpy * sx)

        # Second half-acceleration from E
        vx += ex
        vy += ey
        vz += ez
        u[i, 0] = vx
        u[i, 1] = vy
        u[i, 2] = vz

        # Move and renormalize the offset into [0, 1)
        xn = x[i] + vx * dt_dx
        di = int(np.floor(xn))
        xn -= di
        if xn >= 1.0:
            xn -= 1.0
            di += 1
        cn = ix[i] + di

        if cn < 0 or cn >= nx:
            if boundary == PERIODIC:
                cn = cn % nx
            elif boundary == OPEN:
                keep[i] = False
            else:
                # Mirror the absolute position (cell units) about the wall
                p = cn + xn
                if cn < 0:
                    p = -p
                else:
                    p = 2.0 * nx - p
                u[i, 0] = -vx
                cn = int(np.floor(p))
                xn = p - cn
                if cn >= nx:
                    cn = nx - 1
                    xn = _ONE_MINUS
                elif cn < 0:
                    cn = 0
                    xn = 0.0

        ix[i] = cn
        x[i] = xn

    return energy


# =====================================================================
# Public API: thin wrappers around the Numba kernels
# =====================================================================

def deposit_charge(
    ix: np.ndarray,
    x: np.ndarray,
    q: float,
    rho: np.ndarray,
    count: int | None = None,
) -> np.ndarray:
    """Accumulate the charge density of ``count`` particles into ``rho``.

    Parameters
    ----------
    ix, x : ndarray
        Cell indices and in-cell offsets.
    q : float
        Charge per particle.
    rho : ndarray, shape (nx,)
        Node accumulator, updated in place.
    count : int, optional
        Number of live particles (default: all).

    Returns
    -------
    rho : ndarray
        The accumulator, for chaining.
    """
    n = ix.shape[0] if count is None else count
    _deposit_charge_kernel(ix, x, int(n), float(q), rho)
    return rho


def deposit_current(
    ix: np.ndarray,
    x: np.ndarray,
    u: np.ndarray,
    q: float,
    dt: float,
    dx: float,
    J: np.ndarray,
    count: int | None = None,
    boundary: int = PERIODIC,
) -> np.ndarray:
    """Accumulate the charge-conserving current of the last step into ``J``.

    Parameters
    ----------
    ix, x : ndarray
        Cell indices and offsets at the end of the step.
    u : ndarray, shape (N, 3)
        Velocities used for the step.
    q : float
        Charge per particle.
    dt, dx : float
        Timestep and cell size.
    J : ndarray, shape (3, nx)
        Current accumulator (Jx on half nodes, Jy/Jz on nodes), in place.
    count : int, optional
        Number of live particles (default: all).
    boundary : int
        Particle boundary policy of the step; ``REFLECTIVE`` deposits the
        wall-bounce path of particles mirrored by the push.

    Returns
    -------
    J : ndarray
    """
    n = ix.shape[0] if count is None else count
    _deposit_current_kernel(
        ix, x, u, int(n), float(q), float(dt), float(dx), int(boundary), J
    )
    return J


def interpolate_fields(
    ix: np.ndarray,
    x: np.ndarray,
    E: np.ndarray,
    B: np.ndarray,
    count: int | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Interpolate the grid fields to the particles.

    Returns
    -------
    Ep, Bp : ndarray, each shape (N, 3)
    """
    n = ix.shape[0] if count is None else count
    return _interpolate_kernel(
        ix, x, int(n),
        np.ascontiguousarray(E, dtype=np.float64),
        np.ascontiguousarray(B, dtype=np.float64),
    )


def advance_particles(
    ix: np.ndarray,
    x: np.ndarray,
    u: np.ndarray,
    E: np.ndarray,
    B: np.ndarray,
    m_q: float,
    dt: float,
    dx: float,
    boundary: int = PERIODIC,
    count: int | None = None,
) -> tuple[float, np.ndarray]:
    """Push particles one step in place and apply the boundary policy.

    Parameters
    ----------
    ix, x, u : ndarray
        Particle arrays, modified in place.
    E, B : ndarray, shape (3, nx)
        Fields on the staggered grid.
    m_q : float
        Mass-to-charge ratio.
    dt, dx : float
        Timestep and cell size.
    boundary : int
        ``PERIODIC``, ``OPEN`` or ``REFLECTIVE``.
    count : int, optional
        Number of live particles (default: all).

    Returns
    -------
    energy : float
        Sum of 0.5*|v|^2 over the particles (time-centred).
    keep : ndarray of bool, shape (count,)
        False for particles that left through an open boundary.
    """
    n = ix.shape[0] if count is None else count
    keep = np.ones(int(n), dtype=np.bool_)
    energy = _advance_kernel(
        ix, x, u, int(n),
        np.ascontiguousarray(E, dtype=np.float64),
        np.ascontiguousarray(B, dtype=np.float64),
        float(m_q), float(dt), float(dx), int(boundary), keep,
    )
    return float(energy), keep

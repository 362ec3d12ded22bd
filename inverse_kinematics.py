"""
Closed-Form Inverse Kinematics for 6R Manipulators with a Spherical Wrist

Based on 'An Analytical Solution of the Inverse Kinematics Problem of
Industrial Serial Manipulators with an Ortho-parallel Basis and a Spherical
Wrist' (Brandstoetter, Angerer, Hofbaur).

Strategy:
1. Remove base and tool transforms from the target and move the joint-6
   frame onto the OPW end frame (z along axis 6).
2. Wrist centre C = end position - c4 * approach axis.
3. q1 from the projection of C onto the base plane: two branches 180 deg
   apart (wrist centre in front of / behind axis 1).
4. q2, q3 from the law of cosines on the triangle (c2, k, s) with
   k = sqrt(a2^2 + c3^2): two elbow branches per shoulder branch.
5. q4, q5, q6 from the Z-Y-Z decomposition of the wrist rotation
   R_w = (Rz(q1) Ry(q2 + q3))^T R_end: two wrist-flip branches.

Typical solution count: 8 (2 shoulder x 2 elbow x 2 wrist).

Branch numbering follows the controller's cfx:

cfx   Wrist centre           Wrist centre            Axis 5
      relative to axis 1     relative to lower arm
0     In front of            In front of             Positive
1     In front of            In front of             Negative
2     In front of            Behind                  Positive
3     In front of            Behind                  Negative
4     Behind                 In front of             Positive
5     Behind                 In front of             Negative
6     Behind                 Behind                  Positive
7     Behind                 Behind                  Negative
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from configuration import (
    TURNING_AXES, ConfigurationData, ConfigurationSignature, adjust_to_configuration,
    configuration_key, signature, smallest_turn_difference,
)
from forward_kinematics import limit_diagnostics, tcp_matrix
from kinematic_chain import KinematicChain, OPWParameters
from utilities import JointVector, Pose, normalize_angle, rot_y, rot_z

logger = logging.getLogger(__name__)

# below this |sin(q5)| the split between q4 and q6 is arbitrary; q4 is set to 0
EXACT_SINGULARITY = 1e-12


@dataclass(frozen=True)
class SolverSettings:
    """
    Tolerances used by the solver.

    reach_tolerance: cosine arguments within 1 + tol are clamped instead of
        being reported as out of reach
    shoulder_tolerance: wrist centre distance (length units) from axis 1
        below which a shoulder singularity is reported
    wrist_tolerance: |sin(q5)| below which a wrist singularity is reported
    duplicate_tolerance: max angle difference (deg) for collapsing candidates
    position_tolerance, orientation_tolerance: forward kinematics check of
        every candidate (length units, degrees)
    """

    reach_tolerance: float = 1e-9
    shoulder_tolerance: float = 1e-3
    wrist_tolerance: float = 1e-3
    duplicate_tolerance: float = 1e-6
    position_tolerance: float = 1e-3
    orientation_tolerance: float = 1e-3

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not (value >= 0.0 and math.isfinite(value)):
                raise ValueError(f"Solver setting '{f.name}' must be a finite non-negative number, got {value}")


DEFAULT_SETTINGS = SolverSettings()


@dataclass(frozen=True)
class Solution:
    joints: JointVector
    in_limits: Tuple[bool, ...]
    branch: int
    branches: Tuple[int, ...] = ()
    wrist_singular: bool = False
    shoulder_singular: bool = False

    @property
    def is_valid(self) -> bool:
        return all(self.in_limits)

    @property
    def signature(self) -> ConfigurationSignature:
        return signature(self.joints)

    @property
    def configuration(self) -> ConfigurationData:
        return ConfigurationData.from_joints(self.joints, self.branch)


@dataclass(frozen=True)
class SolutionSet:
    solutions: Tuple[Solution, ...] = ()
    diagnostics: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.solutions)

    def __iter__(self) -> Iterator[Solution]:
        return iter(self.solutions)

    def __getitem__(self, index) -> Solution:
        return self.solutions[index]

    @property
    def is_empty(self) -> bool:
        return not self.solutions

    @property
    def valid(self) -> Tuple[Solution, ...]:
        return tuple(s for s in self.solutions if s.is_valid)

    @property
    def joint_vectors(self) -> Tuple[JointVector, ...]:
        return tuple(s.joints for s in self.solutions)


@dataclass
class _Candidate:
    branch: int
    theta: np.ndarray
    wrist_singular: bool
    shoulder_singular: bool


def _clamped_acos(value: float, tol: float) -> Optional[float]:
    """acos with clamping of small overshoots; None when |value| > 1 + tol."""
    if math.isnan(value) or abs(value) > 1.0 + tol:
        return None
    return math.acos(max(-1.0, min(1.0, value)))


def _fit_into_limits(angle: float, lo: float, hi: float) -> float:
    """Shift an angle by whole turns into [lo, hi] when possible, turning as little as possible."""
    if lo <= angle <= hi:
        return angle
    k_min = math.ceil((lo - angle) / 360.0)
    k_max = math.floor((hi - angle) / 360.0)
    if k_min > k_max:
        return angle
    k = min(max(0, k_min), k_max)
    return angle + 360.0 * k


def _wrist_angles(Rw: np.ndarray, settings: SolverSettings) -> Tuple[Tuple[float, float, float], bool]:
    """
    Z-Y-Z decomposition Rw = Rz(q4) Ry(q5) Rz(q6) with q5 in [0, pi].

    q6 is taken from the residual rotation so the three angles always
    reproduce Rw, including at the singularity.
    """
    r13, r23, r33 = Rw[0, 2], Rw[1, 2], Rw[2, 2]
    s5 = math.hypot(r13, r23)
    q5 = math.atan2(s5, r33)
    q4 = 0.0 if s5 < EXACT_SINGULARITY else math.atan2(r23, r13)
    M = (rot_z(q4) @ rot_y(q5)).T @ Rw
    q6 = math.atan2(M[1, 0], M[0, 0])
    return (q4, q5, q6), s5 < settings.wrist_tolerance


def _opw_candidates(opw: OPWParameters, R_end: np.ndarray, p_end: np.ndarray,
                    settings: SolverSettings, diagnostics: List[str]) -> List[_Candidate]:
    """
    Enumerate the OPW solution branches in cfx order.

    Args:
        opw: OPW parameters of the chain
        R_end: 3x3 orientation of the OPW end frame (base coordinates)
        p_end: position of the OPW end frame (base coordinates)

    Returns:
        List of candidates with angles in OPW space (radians)
    """
    a1, a2, b, c1, c2, c3 = opw.a1, opw.a2, opw.b, opw.c1, opw.c2, opw.c3
    k, psi3 = opw.k, opw.psi3

    # Wrist centre
    cx, cy, cz = p_end - opw.c4 * R_end[:, 2]

    planar2 = cx * cx + cy * cy - b * b
    if planar2 < -settings.reach_tolerance * max(1.0, b * b):
        diagnostics.append("The target is out of reach (wrist centre inside the axis 1 offset).")
        return []
    nx1 = math.sqrt(max(planar2, 0.0)) - a1

    shoulder_singular = math.hypot(cx, cy) < settings.shoulder_tolerance
    if shoulder_singular:
        diagnostics.append("The robot is near a shoulder singularity (wrist centre on axis 1).")
    # atan2(0, 0) is the tie-break for a wrist centre exactly on axis 1
    atan1 = 0.0 if cx == 0.0 and cy == 0.0 else math.atan2(cy, cx)
    atan2b = math.atan2(b, nx1 + a1)

    shoulders = (
        (atan1 - atan2b, nx1, math.atan2(nx1, cz - c1)),
        (atan1 + atan2b - math.pi, nx1 + 2.0 * a1, -math.atan2(nx1 + 2.0 * a1, cz - c1)),
    )

    candidates = []
    for shoulder, (q1, n, psi1) in enumerate(shoulders):
        s2 = n * n + (cz - c1) * (cz - c1)
        s = math.sqrt(s2)
        if s == 0.0:
            diagnostics.append("The target is out of reach (wrist centre on axis 2).")
            continue

        psi2 = _clamped_acos((s2 + c2 * c2 - k * k) / (2.0 * s * c2), settings.reach_tolerance)
        elbow = _clamped_acos((s2 - c2 * c2 - k * k) / (2.0 * c2 * k), settings.reach_tolerance)
        if psi2 is None or elbow is None:
            side = "in front of" if shoulder == 0 else "behind"
            diagnostics.append(f"The target is out of reach with the wrist centre {side} axis 1 (elbow singularity).")
            continue

        elbows = (
            (psi1 - psi2, elbow - psi3),
            (psi1 + psi2, -elbow - psi3),
        )
        for elbow_index, (q2, q3) in enumerate(elbows):
            R0c = rot_z(q1) @ rot_y(q2 + q3)
            (q4, q5, q6), wrist_singular = _wrist_angles(R0c.T @ R_end, settings)
            for flip in (0, 1):
                if flip:
                    theta = np.array([q1, q2, q3, q4 + math.pi, -q5, q6 - math.pi])
                else:
                    theta = np.array([q1, q2, q3, q4, q5, q6])
                # wrap into [-pi, pi] before the offset/sign correction
                theta = (theta + math.pi) % (2.0 * math.pi) - math.pi
                branch = 4 * shoulder + 2 * elbow_index + flip
                candidates.append(_Candidate(branch, theta, wrist_singular, shoulder_singular))

    return candidates


def _as_pose(target: Union[Pose, np.ndarray]) -> Pose:
    return target if isinstance(target, Pose) else Pose.from_matrix(target)


def _unique(messages: Sequence[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(messages))


def solve(chain: KinematicChain, target: Union[Pose, np.ndarray],
          settings: SolverSettings = DEFAULT_SETTINGS, opw: Optional[OPWParameters] = None,
          external: Sequence[float] = ()) -> SolutionSet:
    """
    Compute all joint vectors that place the TCP at the target pose.

    Args:
        chain: kinematic chain with an ortho-parallel base and spherical wrist
        target: TCP pose in world coordinates (Pose or 4x4 matrix)
        settings: solver tolerances
        opw: pre-computed OPW parameters of the chain (derived when omitted)
        external: external axis values attached unchanged to every solution

    Returns:
        SolutionSet sorted by configuration, with diagnostics for unreachable
        branches, singularities and out-of-range axes

    Raises:
        ChainDefinitionError: the chain is not an ortho-parallel manipulator
            with a spherical wrist (only when opw is not given)
    """
    if opw is None:
        opw = OPWParameters.from_chain(chain)
    target = _as_pose(target)
    diagnostics: List[str] = []

    link6 = chain.base.inverse() * target * chain.tcp_offset.inverse()
    end = link6 * opw.end_correction

    candidates = _opw_candidates(opw, end.orientation.as_matrix(), end.position.as_array(),
                                 settings, diagnostics)

    kept: List[Solution] = []
    for candidate in candidates:
        q = opw.from_opw_angles(candidate.theta)
        angles = tuple(_fit_into_limits(normalize_angle(float(a)), lo, hi)
                       for a, (lo, hi) in zip(q, chain.axis_limits))

        reached = Pose.from_matrix(tcp_matrix(chain, angles))
        position_error, orientation_error = reached.distance_to(target)
        if position_error > settings.position_tolerance or orientation_error > settings.orientation_tolerance:
            diagnostics.append(
                f"Solution {candidate.branch}: forward kinematics check failed "
                f"(position error {position_error:.3g}, orientation error {orientation_error:.3g} deg).")
            continue

        duplicate = None
        for index, other in enumerate(kept):
            if max(abs(x - y) for x, y in zip(angles, other.joints.angles)) < settings.duplicate_tolerance:
                duplicate = index
                break
        if duplicate is not None:
            other = kept[duplicate]
            kept[duplicate] = replace(other, branches=other.branches + (candidate.branch,),
                                      wrist_singular=other.wrist_singular or candidate.wrist_singular)
            continue

        in_limits, limit_messages = limit_diagnostics(chain, angles)
        diagnostics.extend(f"Solution {candidate.branch}: {m}" for m in limit_messages)
        if candidate.wrist_singular:
            diagnostics.append(f"Solution {candidate.branch}: The robot is near a wrist singularity.")

        kept.append(Solution(JointVector(angles, tuple(external)), in_limits, candidate.branch,
                             (candidate.branch,), candidate.wrist_singular, candidate.shoulder_singular))

    if not kept:
        diagnostics.append("No inverse kinematics solution found for the target.")

    solutions = tuple(sorted(kept, key=lambda s: configuration_key(s.joints)))
    diagnostics = _unique(diagnostics)

    logger.debug("Found %d inverse kinematics solutions (%d valid)",
                 len(solutions), sum(1 for s in solutions if s.is_valid))
    for message in diagnostics:
        logger.debug(message)

    return SolutionSet(solutions, diagnostics)


def _with_joints(chain: KinematicChain, solution: Solution, joints: JointVector) -> Solution:
    in_limits, _ = limit_diagnostics(chain, joints.angles)
    return replace(solution, joints=joints, in_limits=in_limits)


def closest_solution(chain: KinematicChain, solutions: Union[SolutionSet, Sequence[Solution]],
                     previous: JointVector, include_joint1: bool = True,
                     include_joint4: bool = True, include_joint6: bool = True) -> Optional[Solution]:
    """
    Pick the solution nearest to a previous joint vector.

    Turning axes 1, 4 and 6 (when included) are first shifted by whole turns
    towards the previous angles; the candidate with the smallest joint-space
    distance wins and its limit flags are re-evaluated.

    Returns:
        The closest Solution, or None when there are no solutions
    """
    include = dict(zip(TURNING_AXES, (include_joint1, include_joint4, include_joint6)))
    best, best_norm = None, math.inf
    for solution in solutions:
        angles = list(solution.joints.angles)
        for index, enabled in include.items():
            if enabled:
                _, turns = smallest_turn_difference(previous[index], angles[index])
                angles[index] += turns * 360.0
        joints = JointVector(tuple(angles), solution.joints.external)
        norm = previous.norm_to(joints)
        if norm < best_norm:
            best, best_norm = _with_joints(chain, solution, joints), norm
    return best


def solve_for_configuration(chain: KinematicChain, target: Union[Pose, np.ndarray],
                            configuration: ConfigurationData,
                            settings: SolverSettings = DEFAULT_SETTINGS,
                            opw: Optional[OPWParameters] = None) -> Tuple[Optional[Solution], Tuple[str, ...]]:
    """
    Solve for the branch cfx of a configuration record and move axes 1, 4
    and 6 by whole turns into the requested quadrants.

    Returns:
        (solution or None, diagnostics)
    """
    result = solve(chain, target, settings, opw)
    for solution in result:
        if configuration.cfx in solution.branches:
            joints = adjust_to_configuration(solution.joints, configuration.cf1,
                                             configuration.cf4, configuration.cf6)
            adjusted = _with_joints(chain, replace(solution, branch=configuration.cfx), joints)
            diagnostics = result.diagnostics
            if adjusted.signature != configuration.signature:
                diagnostics += (f"Configuration {configuration} cannot be matched exactly; "
                                f"using {adjusted.configuration}.",)
            return adjusted, diagnostics
    return None, result.diagnostics + (f"No solution for branch cfx={configuration.cfx}.",)

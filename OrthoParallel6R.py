"""
KINEMATICS SOLVER FOR 6R ROBOTS WITH AN ORTHO-PARALLEL BASE AND SPHERICAL WRIST

Closed-form forward and inverse kinematics for industrial arms whose axes 2
and 3 are parallel, whose axis 1 is orthogonal to them, and whose axes 4, 5
and 6 intersect in one point (wrist centre).

OPW Parameters:
| Parameter | Meaning                                        |
|-----------|------------------------------------------------|
| a1        | offset of axis 2 from axis 1 along x           |
| a2        | offset of the forearm from axis 3 (drop)       |
| b         | lateral offset along y                         |
| c1        | height of axis 2 above the base                |
| c2        | upper arm length (axis 2 to axis 3)            |
| c3        | forearm length (axis 3 to wrist centre)        |
| c4        | wrist centre to flange                         |

Solutions are returned in configuration order (cf1, cf4, cf6).
"""

import logging
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from forward_kinematics import ForwardKinematicsResult, evaluate, tcp_matrix
from inverse_kinematics import DEFAULT_SETTINGS, SolutionSet, SolverSettings, solve
from kinematic_chain import KinematicChain, OPWParameters
from utilities import JointVector, NUM_AXES, Pose

logger = logging.getLogger(__name__)


class OrthoParallel6R:
    """
    Inverse kinematics solver for 6R robots with an ortho-parallel base and
    spherical wrist.

    This class acts as a wrapper that:
    1. Accepts a kinematic chain (or OPW parameters through from_opw)
    2. Extracts and caches the OPW parameters of the chain
    3. Returns FK as 4x4 matrices and IK as arrays in degrees, sorted by configuration
    """

    def __init__(self, chain: KinematicChain, settings: Optional[SolverSettings] = None):
        """
        Args:
            chain: kinematic chain with base, flange and tool transforms
            settings: solver tolerances (defaults to DEFAULT_SETTINGS)

        Raises:
            ChainDefinitionError: the chain is not an ortho-parallel
                manipulator with a spherical wrist
        """
        self.chain = chain
        self.settings = settings if settings is not None else DEFAULT_SETTINGS
        self.opw = OPWParameters.from_chain(chain)

        p = self.opw
        logger.info("Initialized OrthoParallel6R solver: a1=%.2f, a2=%.2f, b=%.2f, c1=%.2f, "
                    "c2=%.2f, c3=%.2f, c4=%.2f", p.a1, p.a2, p.b, p.c1, p.c2, p.c3, p.c4)
        logger.info("  Axis signs: %s", list(p.signs))
        logger.info("  Axis limits: %s", [f"[{lo:.1f}, {hi:.1f}]" for lo, hi in chain.axis_limits])

    @classmethod
    def from_opw(cls, a1: float, a2: float, b: float, c1: float, c2: float, c3: float, c4: float,
                 limits: Sequence[Tuple[float, float]] = ((-180.0, 180.0),) * NUM_AXES,
                 base: Optional[Pose] = None, tool: Optional[Pose] = None,
                 settings: Optional[SolverSettings] = None) -> "OrthoParallel6R":
        chain = KinematicChain.from_opw(a1, a2, b, c1, c2, c3, c4, limits, base=base, tool=tool)
        return cls(chain, settings)

    def FK(self, joint: Union[JointVector, Sequence[float]]) -> np.ndarray:
        """
        Compute forward kinematics for the robot.

        Args:
            joint: six axis angles in degrees

        Returns:
            TBW: 4x4 homogeneous transformation matrix (world to TCP)
        """
        return tcp_matrix(self.chain, joint)

    def evaluate(self, joint: Union[JointVector, Sequence[float]]) -> ForwardKinematicsResult:
        return evaluate(self.chain, joint)

    def solve(self, target: Union[Pose, np.ndarray]) -> SolutionSet:
        return solve(self.chain, target, self.settings, self.opw)

    def IK(self, TBW: Union[Pose, np.ndarray], verbose: bool = False) -> Tuple[np.ndarray, np.ndarray]:
        """
        Solve inverse kinematics for target pose TBW.

        Args:
            TBW: 4x4 target homogeneous transformation matrix (world to TCP) or Pose
            verbose: log every solution and diagnostic at info level

        Returns:
            Tuple (solutions, outOfRangeSolutions):
            - solutions: Nx6 array of solutions in degrees with all axes in range
            - outOfRangeSolutions: Mx6 array of solutions with an axis out of range
        """
        result = self.solve(TBW)

        if verbose:
            logger.info("TOTAL SOLUTIONS FOUND: %d", len(result))
            for solution in result:
                logger.info("Solution cfx=%d %s: [%s]%s", solution.branch, solution.configuration,
                            ", ".join(f"{a:.3f}" for a in solution.joints),
                            "" if solution.is_valid else " (out of range)")
            for message in result.diagnostics:
                logger.info(message)

        valid = [s.joints.angles for s in result if s.is_valid]
        out_of_range = [s.joints.angles for s in result if not s.is_valid]
        solutions = np.array(valid) if valid else np.empty((0, NUM_AXES))
        outOfRangeSolutions = np.array(out_of_range) if out_of_range else np.empty((0, NUM_AXES))
        return solutions, outOfRangeSolutions

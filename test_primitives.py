"""
Tests for geometric primitives, chain construction and OPW parameter extraction.
"""

import math

import numpy as np
import pytest

from forward_kinematics import evaluate, tcp_matrix
from inverse_kinematics import SolverSettings
from kinematic_chain import ChainDefinitionError, JointDescriptor, KinematicChain, OPWParameters
from utilities import (
    JointVector, Pose, Quaternion, Vector3, X_AXIS, Y_AXIS, Z_AXIS, normalize_angle, rot_y, rot_z,
)


def test_quaternion_is_normalized():
    q = Quaternion(2.0, 0.0, 0.0, 0.0)
    assert q.as_tuple() == (1.0, 0.0, 0.0, 0.0)

    q = Quaternion(1.0, 1.0, 0.0, 0.0)
    assert math.isclose(sum(c * c for c in q.as_tuple()), 1.0)

    with pytest.raises(ValueError):
        Quaternion(0.0, 0.0, 0.0, 0.0)


def test_quaternion_axis_angle():
    q = Quaternion.from_axis_angle((0, 0, 1), 90.0)
    assert np.allclose(q.rotate(X_AXIS).as_array(), [0.0, 1.0, 0.0])
    axis, angle = q.as_axis_angle()
    assert np.allclose(axis.as_array(), [0.0, 0.0, 1.0])
    assert angle == pytest.approx(90.0)
    assert Quaternion.identity().as_axis_angle() == (Z_AXIS, 0.0)
    assert (q * q.inverse()).angle_to(Quaternion.identity()) == pytest.approx(0.0, abs=1e-6)


def test_pose_matrix_conversion():
    pose = Pose.from_xyz_axis_angle(100.0, -20.0, 300.0, axis=(1, 1, 0), angle=35.0)
    T = pose.as_matrix()
    assert T.shape == (4, 4)
    assert np.allclose(T[:3, 3], [100.0, -20.0, 300.0])

    back = Pose.from_matrix(T)
    position_error, orientation_error = back.distance_to(pose)
    assert position_error < 1e-9 and orientation_error < 1e-6

    identity = pose * pose.inverse()
    assert np.allclose(identity.as_matrix(), np.eye(4), atol=1e-9)

    with pytest.raises(ValueError):
        Pose.from_matrix(np.eye(3))


def test_elementary_rotations():
    assert np.allclose(rot_y(math.pi / 2) @ [0.0, 0.0, 1.0], [1.0, 0.0, 0.0])
    assert np.allclose(rot_z(math.pi / 2) @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
    assert np.allclose(rot_z(0.3) @ rot_z(-0.3), np.eye(3))


def test_quaternion_product_and_angle():
    a = Quaternion.from_axis_angle((0, 0, 1), 30.0)
    b = Quaternion.from_axis_angle((0, 0, 1), 45.0)
    assert (a * b).angle_to(Quaternion.from_axis_angle((0, 0, 1), 75.0)) == pytest.approx(0.0, abs=1e-6)
    assert a.angle_to(b) == pytest.approx(15.0)

    c = Quaternion.from_axis_angle((1, 0, 0), 90.0)
    assert np.allclose((a * c).as_matrix(), a.as_matrix() @ c.as_matrix())
    # q and -q are the same orientation
    assert Quaternion(-c.w, -c.x, -c.y, -c.z).angle_to(c) == pytest.approx(0.0, abs=1e-6)


def test_pose_composition_matches_matrix_product():
    a = Pose.from_xyz_axis_angle(10.0, 0.0, 5.0, axis=(0, 0, 1), angle=90.0)
    b = Pose.from_xyz_axis_angle(1.0, 2.0, 3.0, axis=(0, 1, 0), angle=-30.0)
    assert np.allclose((a * b).as_matrix(), a.as_matrix() @ b.as_matrix())


def test_normalize_angle():
    assert normalize_angle(190.0) == pytest.approx(-170.0)
    assert normalize_angle(-540.0) == pytest.approx(-180.0)
    assert normalize_angle(180.0) == 180.0
    assert normalize_angle(-180.0) == -180.0
    assert normalize_angle(725.0) == pytest.approx(5.0)


def test_joint_vector():
    joints = JointVector.of(1, 2, 3, 4, 5, 6)
    assert len(joints) == 6
    assert joints[2] == 3.0
    assert joints.with_angle(2, 30.0).angles == (1.0, 2.0, 30.0, 4.0, 5.0, 6.0)
    assert joints.norm_to(JointVector.zeros()) == pytest.approx(math.sqrt(91.0))
    assert np.allclose(JointVector.from_radians(joints.as_radians()).as_array(), joints.as_array())

    with pytest.raises(ValueError):
        JointVector((1.0, 2.0, 3.0))


def test_joint_descriptor_validation():
    frame = Pose.identity()
    with pytest.raises(ChainDefinitionError):
        JointDescriptor(frame, Vector3(0.0, 0.0, 0.0))
    with pytest.raises(ChainDefinitionError):
        JointDescriptor(frame, Vector3(0.0, 0.0, 2.0))
    with pytest.raises(ChainDefinitionError):
        JointDescriptor(frame, Z_AXIS, limits=(10.0, -10.0))
    with pytest.raises(ChainDefinitionError):
        JointDescriptor(frame, Z_AXIS, kind="linear")
    assert issubclass(ChainDefinitionError, ValueError)


def test_joint_descriptor_accepts_plain_axis():
    joint = JointDescriptor(Pose.identity(), (0.0, 1.0, 0.0))
    assert joint.axis == Y_AXIS

    with pytest.raises(ChainDefinitionError):
        JointDescriptor(Pose.identity(), (0.0, 0.0, 3.0))
    with pytest.raises(ChainDefinitionError):
        JointDescriptor(Pose.identity(), (1.0, 0.0))


def test_chain_requires_six_joints():
    joint = JointDescriptor(Pose.identity(), Z_AXIS)
    with pytest.raises(ChainDefinitionError):
        KinematicChain((joint,) * 5)


def test_opw_parameters_round_trip():
    chain = KinematicChain.from_opw(320, -200, 0, 780, 1145, 1462.5, 250)
    opw = OPWParameters.from_chain(chain)

    assert (opw.a1, opw.a2, opw.b, opw.c1, opw.c2, opw.c3, opw.c4) == pytest.approx(
        (320, -200, 0, 780, 1145, 1462.5, 250))
    assert opw.signs == (1, 1, 1, 1, 1, 1)
    q = np.array([10.0, -20.0, 30.0, 40.0, -50.0, 60.0])
    assert np.allclose(opw.from_opw_angles(opw.to_opw_angles(q)), q)


def test_from_chain_rejects_non_spherical_wrist():
    a1, c1, c2, c3, c4 = 150, 486.5, 700, 600, 65
    h = c1 + c2
    origins = [(0, 0, 0), (a1, 0, c1), (a1, 0, c1 + c2), (a1, 0, h), (a1 + c3, 0, h + 40), (a1 + c3 + c4, 0, h)]
    axes = [Z_AXIS, Y_AXIS, Y_AXIS, X_AXIS, Y_AXIS, X_AXIS]
    flange = Pose(Vector3(a1 + c3 + c4, 0, h), Quaternion.from_matrix(rot_y(math.pi / 2)))
    chain = KinematicChain.from_home_axes(origins, axes, [(-180, 180)] * 6, flange)

    with pytest.raises(ChainDefinitionError):
        OPWParameters.from_chain(chain)


def test_from_chain_rejects_skewed_axis():
    axes = [Z_AXIS, Y_AXIS, Vector3(0.0, math.sqrt(0.5), math.sqrt(0.5)), X_AXIS, Y_AXIS, X_AXIS]
    origins = [(0, 0, 0), (150, 0, 486.5), (150, 0, 1186.5), (150, 0, 1186.5),
               (750, 0, 1186.5), (815, 0, 1186.5)]
    chain = KinematicChain.from_home_axes(origins, axes, [(-180, 180)] * 6, Pose(Vector3(815, 0, 1186.5)))

    with pytest.raises(ChainDefinitionError):
        OPWParameters.from_chain(chain)


def test_forward_kinematics_home_pose():
    chain = KinematicChain.from_opw(150, 0, 0, 486.5, 700, 600, 65)
    result = evaluate(chain, JointVector.zeros())

    assert np.allclose(result.pose.position.as_array(), [815.0, 0.0, 1186.5])
    # flange x = -Z, y = +Y, z = +X
    assert np.allclose(result.pose.orientation.as_matrix(), rot_y(math.pi / 2), atol=1e-12)
    assert np.allclose(tcp_matrix(chain, JointVector.zeros()), result.pose.as_matrix())
    assert result.is_in_limits and result.diagnostics == ()
    assert len(result.joint_frames) == 6


def test_forward_kinematics_limit_diagnostics():
    chain = KinematicChain.from_opw(150, 0, 0, 486.5, 700, 600, 65,
                                    limits=[(-180, 180), (-63, 110), (-235, 55),
                                            (-200, 200), (-115, 115), (-400, 400)])
    result = evaluate(chain, [0.0, 120.0, 0.0, 0.0, -116.0, 0.0])

    assert result.in_limits == (True, False, True, True, False, True)
    assert not result.is_in_limits
    assert result.diagnostics == ("The position of robot axis 2 is not in range.",
                                  "The position of robot axis 5 is not in range.")


def test_axis_1_rotation_moves_tcp_around_base():
    chain = KinematicChain.from_opw(150, 0, 0, 486.5, 700, 600, 65)
    position = evaluate(chain, [90.0, 0.0, 0.0, 0.0, 0.0, 0.0]).pose.position
    assert np.allclose(position.as_array(), [0.0, 815.0, 1186.5], atol=1e-9)


def test_solver_settings_validation():
    with pytest.raises(ValueError):
        SolverSettings(wrist_tolerance=-1.0)
    assert SolverSettings().position_tolerance == 1e-3

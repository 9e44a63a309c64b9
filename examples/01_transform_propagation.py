"""
Transform Propagation
=====================

A small scene of nested objects, each with a local offset. One mutable
traversal turns local offsets into world positions by adding each parent's
(already updated) world position into its child. Hidden objects and
everything below them are skipped.
"""

from dataclasses import dataclass

from scenegraph import ROOT, SceneGraph, configure_logging


@dataclass
class Transform:
    name: str
    x: float
    y: float
    visible: bool = True


def build_scene() -> SceneGraph[Transform]:
    sg = SceneGraph(Transform("world", 0.0, 0.0))
    ship = sg.attach(ROOT, Transform("ship", 10.0, 5.0))
    sg.attach(ship, Transform("turret", 1.0, 0.5))
    cloaked = sg.attach(ship, Transform("cloaked drone", 3.0, 3.0, visible=False))
    sg.attach(cloaked, Transform("drone light", 0.0, 1.0))
    sg.attach(ROOT, Transform("asteroid", -4.0, 7.0))
    return sg


def propagate(sg: SceneGraph[Transform]) -> None:
    """Add each visible parent's position into its visible children."""
    with sg.iterate_mutable_pruned(lambda t: t.visible) as pairs:
        for pair in pairs:
            pair.child.x += pair.parent.x
            pair.child.y += pair.parent.y


if __name__ == "__main__":
    configure_logging()
    scene = build_scene()
    propagate(scene)
    for _, transform in scene.iterate_from(ROOT):
        print(f"{transform.name:<14} ({transform.x:6.1f}, {transform.y:6.1f})")

"""
2-D rigid-body physics renderer.

Scenes live in an 800x400 virtual world with invisible side walls and a
ground at y=400. The integrator mirrors the defaults of common browser
physics engines: a fixed 1/60 s step, gravity scaled by 0.001 per ms²,
restitution 0.6, surface friction 0.1 and air friction 0.01.

Collision handling:
- circle vs circle: exact
- circle vs rectangle: exact against the rotated rectangle
- rectangle vs rectangle: axis-aligned bounds of the rotated shapes
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import RendererError
from .canvas import BrailleCanvas
from .context import RenderContext, plain, safe_color

logger = logging.getLogger(__name__)

WORLD_WIDTH = 800.0
WORLD_HEIGHT = 400.0

STEP_MS = 1000.0 / 60.0
GRAVITY_SCALE = 0.001
DENSITY = 0.001

DEFAULT_RESTITUTION = 0.6
DEFAULT_FRICTION = 0.1
AIR_FRICTION = 0.01
DEFAULT_RADIUS = 20.0
DEFAULT_SIZE = 40.0

# Pixels of arrow per unit of velocity or force value
VECTOR_SCALE = 12.0
DEFAULT_VECTOR = 40.0
BUOYANCY_KEYWORDS = ("부력", "buoyancy", "buoyant")


# ============================================================================
# Scene payload
# ============================================================================

class Vec(BaseModel):
    x: float = 0.0
    y: float = 0.0


class VectorSpec(BaseModel):
    type: str = "custom"
    label: Optional[str] = None
    color: Optional[str] = None
    value: Optional[Vec] = None


class BodyOptions(BaseModel):
    model_config = ConfigDict(extra="allow")

    restitution: Optional[float] = None
    friction: Optional[float] = None
    frictionAir: Optional[float] = None
    isStatic: bool = False


class PhysicsObject(BaseModel):
    type: str = "circle"
    x: float
    y: float
    radius: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    options: BodyOptions = Field(default_factory=BodyOptions)
    velocity: Optional[Vec] = None
    angle: Optional[float] = None
    angularVelocity: Optional[float] = None
    label: Optional[str] = None
    color: Optional[str] = None
    vectors: List[VectorSpec] = Field(default_factory=list)


class PhysicsScene(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    gravity: Vec = Field(default_factory=lambda: Vec(x=0.0, y=1.0))
    objects: List[PhysicsObject] = Field(default_factory=list)


# ============================================================================
# Simulation
# ============================================================================

@dataclass
class Body:
    spec: PhysicsObject
    shape: str
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    angle: float = 0.0
    angular_velocity: float = 0.0
    radius: float = DEFAULT_RADIUS
    width: float = DEFAULT_SIZE
    height: float = DEFAULT_SIZE
    restitution: float = DEFAULT_RESTITUTION
    friction: float = DEFAULT_FRICTION
    friction_air: float = AIR_FRICTION
    is_static: bool = False

    @classmethod
    def from_spec(cls, spec: PhysicsObject) -> "Body":
        opts = spec.options
        body = cls(
            spec=spec,
            shape="circle" if spec.type == "circle" else "rectangle",
            x=spec.x,
            y=spec.y,
            radius=spec.radius or DEFAULT_RADIUS,
            width=spec.width or DEFAULT_SIZE,
            height=spec.height or DEFAULT_SIZE,
            restitution=DEFAULT_RESTITUTION if opts.restitution is None else opts.restitution,
            friction=DEFAULT_FRICTION if opts.friction is None else opts.friction,
            friction_air=AIR_FRICTION if opts.frictionAir is None else opts.frictionAir,
            is_static=opts.isStatic,
            angle=spec.angle or 0.0,
            angular_velocity=spec.angularVelocity or 0.0,
        )
        if spec.velocity is not None and not body.is_static:
            body.vx, body.vy = spec.velocity.x, spec.velocity.y
        return body

    @property
    def mass(self) -> float:
        if self.shape == "circle":
            return math.pi * self.radius ** 2 * DENSITY
        return self.width * self.height * DENSITY

    @property
    def inverse_mass(self) -> float:
        return 0.0 if self.is_static else 1.0 / self.mass

    def extents(self) -> Tuple[float, float]:
        """Half width and half height of the axis-aligned bounds."""
        if self.shape == "circle":
            return self.radius, self.radius
        c, s = abs(math.cos(self.angle)), abs(math.sin(self.angle))
        hw, hh = self.width / 2, self.height / 2
        return hw * c + hh * s, hw * s + hh * c

    def corners(self) -> List[Tuple[float, float]]:
        c, s = math.cos(self.angle), math.sin(self.angle)
        hw, hh = self.width / 2, self.height / 2
        return [
            (self.x + dx * c - dy * s, self.y + dx * s + dy * c)
            for dx, dy in ((-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh))
        ]

    @property
    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)


@dataclass
class Contact:
    a: Body
    b: Body
    # Unit normal pointing from a to b
    nx: float
    ny: float
    depth: float


def _circle_circle(a: Body, b: Body) -> Optional[Contact]:
    dx, dy = b.x - a.x, b.y - a.y
    dist = math.hypot(dx, dy)
    overlap = a.radius + b.radius - dist
    if overlap <= 0:
        return None
    if dist == 0:
        return Contact(a, b, 0.0, 1.0, overlap)
    return Contact(a, b, dx / dist, dy / dist, overlap)


def _circle_rect(circle: Body, rect: Body) -> Optional[Contact]:
    """Contact with the normal pointing from rect to circle, or None."""
    c, s = math.cos(rect.angle), math.sin(rect.angle)
    # Circle centre in the rectangle's local frame
    dx, dy = circle.x - rect.x, circle.y - rect.y
    lx, ly = dx * c + dy * s, -dx * s + dy * c
    hw, hh = rect.width / 2, rect.height / 2

    inside = abs(lx) <= hw and abs(ly) <= hh
    if inside:
        # Push out along the shallowest face
        px, py = hw - abs(lx), hh - abs(ly)
        if px < py:
            nlx, nly, depth = math.copysign(1.0, lx), 0.0, px + circle.radius
        else:
            nlx, nly, depth = 0.0, math.copysign(1.0, ly), py + circle.radius
    else:
        qx, qy = max(-hw, min(hw, lx)), max(-hh, min(hh, ly))
        ox, oy = lx - qx, ly - qy
        dist = math.hypot(ox, oy)
        if dist >= circle.radius:
            return None
        nlx, nly, depth = ox / dist, oy / dist, circle.radius - dist

    nx, ny = nlx * c - nly * s, nlx * s + nly * c
    return Contact(rect, circle, nx, ny, depth)


def _rect_rect(a: Body, b: Body) -> Optional[Contact]:
    aw, ah = a.extents()
    bw, bh = b.extents()
    dx, dy = b.x - a.x, b.y - a.y
    px = aw + bw - abs(dx)
    py = ah + bh - abs(dy)
    if px <= 0 or py <= 0:
        return None
    if px < py:
        return Contact(a, b, math.copysign(1.0, dx or 1.0), 0.0, px)
    return Contact(a, b, 0.0, math.copysign(1.0, dy or 1.0), py)


def find_contact(a: Body, b: Body) -> Optional[Contact]:
    if a.shape == "circle" and b.shape == "circle":
        return _circle_circle(a, b)
    if a.shape == "circle":
        return _circle_rect(a, b)
    if b.shape == "circle":
        return _circle_rect(b, a)
    return _rect_rect(a, b)


def resolve(contact: Contact) -> None:
    """Positional correction plus restitution and friction impulses."""
    a, b = contact.a, contact.b
    ima, imb = a.inverse_mass, b.inverse_mass
    total = ima + imb
    if total == 0:
        return
    nx, ny = contact.nx, contact.ny

    a.x -= nx * contact.depth * ima / total
    a.y -= ny * contact.depth * ima / total
    b.x += nx * contact.depth * imb / total
    b.y += ny * contact.depth * imb / total

    rvx, rvy = b.vx - a.vx, b.vy - a.vy
    normal_speed = rvx * nx + rvy * ny
    if normal_speed > 0:
        return

    e = max(a.restitution, b.restitution)
    j = -(1 + e) * normal_speed / total
    a.vx -= j * ima * nx
    a.vy -= j * ima * ny
    b.vx += j * imb * nx
    b.vy += j * imb * ny

    tx, ty = rvx - normal_speed * nx, rvy - normal_speed * ny
    tangent = math.hypot(tx, ty)
    if tangent < 1e-9:
        return
    tx, ty = tx / tangent, ty / tangent
    jt = -(rvx * tx + rvy * ty) / total
    limit = j * min(a.friction, b.friction)
    jt = max(-limit, min(limit, jt))
    a.vx -= jt * ima * tx
    a.vy -= jt * ima * ty
    b.vx += jt * imb * tx
    b.vy += jt * imb * ty


class PhysicsSimulation:
    """Deterministic fixed-step simulation of one scene. Restartable."""

    def __init__(self, scene: PhysicsScene):
        self.scene = scene
        self.bodies: List[Body] = []
        self.steps = 0
        self.reset()

    @classmethod
    def from_payload(cls, payload: dict) -> "PhysicsSimulation":
        try:
            scene = PhysicsScene.model_validate(payload)
        except ValidationError as e:
            raise RendererError(f"Invalid physics scene: {e.error_count()} error(s)") from e
        return cls(scene)

    def reset(self) -> None:
        self.bodies = [Body.from_spec(obj) for obj in self.scene.objects]
        self.steps = 0

    @property
    def elapsed(self) -> float:
        """Simulated seconds since the last reset."""
        return self.steps * STEP_MS / 1000.0

    def step(self, count: int = 1) -> None:
        gravity = self.scene.gravity
        gx = gravity.x * GRAVITY_SCALE * STEP_MS ** 2
        gy = gravity.y * GRAVITY_SCALE * STEP_MS ** 2

        for _ in range(count):
            for body in self.bodies:
                if body.is_static:
                    continue
                body.vx = (body.vx + gx) * (1 - body.friction_air)
                body.vy = (body.vy + gy) * (1 - body.friction_air)
                body.angular_velocity *= 1 - body.friction_air
                body.x += body.vx
                body.y += body.vy
                body.angle += body.angular_velocity

            for i, a in enumerate(self.bodies):
                for b in self.bodies[i + 1:]:
                    if a.is_static and b.is_static:
                        continue
                    contact = find_contact(a, b)
                    if contact is not None:
                        resolve(contact)

            for body in self.bodies:
                if not body.is_static:
                    self._bounce_off_walls(body)
            self.steps += 1

    def _bounce_off_walls(self, body: Body) -> None:
        ex, ey = body.extents()
        if body.y + ey > WORLD_HEIGHT:
            body.y = WORLD_HEIGHT - ey
            if body.vy > 0:
                body.vy = -body.vy * body.restitution
                body.vx *= 1 - body.friction
        if body.x - ex < 0:
            body.x = ex
            if body.vx < 0:
                body.vx = -body.vx * body.restitution
        elif body.x + ex > WORLD_WIDTH:
            body.x = WORLD_WIDTH - ex
            if body.vx > 0:
                body.vx = -body.vx * body.restitution


def vector_delta(vector: VectorSpec, body: Body) -> Tuple[float, float]:
    """Arrow offset for a body's vector annotation, in world units."""
    if vector.type == "velocity":
        return body.vx * VECTOR_SCALE, body.vy * VECTOR_SCALE
    if vector.value is not None:
        return vector.value.x * VECTOR_SCALE, vector.value.y * VECTOR_SCALE
    if vector.type == "gravity":
        return 0.0, DEFAULT_VECTOR
    if vector.type == "force":
        label = (vector.label or "").lower()
        if any(keyword in label for keyword in BUOYANCY_KEYWORDS):
            return 0.0, -DEFAULT_VECTOR
        return 0.0, DEFAULT_VECTOR
    return 0.0, 0.0


# ============================================================================
# Renderer
# ============================================================================

class PhysicsRenderer:

    def __init__(self, context: RenderContext):
        self.context = context

    def render(self, payload: dict) -> RenderableType:
        simulation = PhysicsSimulation.from_payload(payload)
        simulation.step(self.context.physics_steps)
        return self.frame(simulation)

    def frame(self, simulation: PhysicsSimulation) -> RenderableType:
        theme = self.context.theme
        cols = max(32, min(self.context.width - 4, 80))
        canvas = BrailleCanvas(cols, max(8, cols // 4), WORLD_WIDTH, WORLD_HEIGHT)

        canvas.line(0, WORLD_HEIGHT - 1, WORLD_WIDTH, WORLD_HEIGHT - 1, theme.muted)
        for index, body in enumerate(simulation.bodies):
            style = safe_color(body.spec.color, theme.muted if body.is_static else theme.color(5))
            if body.shape == "circle":
                canvas.circle(body.x, body.y, body.radius, style)
            else:
                canvas.polygon(body.corners(), style)

        for index, body in enumerate(simulation.bodies):
            if body.spec.label:
                stagger = 20 if index % 2 == 0 else 45
                _, ey = body.extents()
                canvas.text(body.x, body.y - ey - stagger, body.spec.label, theme.foreground)

        for body in simulation.bodies:
            for vector in body.spec.vectors:
                dx, dy = vector_delta(vector, body)
                if abs(dx) > 0.1 or abs(dy) > 0.1:
                    color = safe_color(vector.color, theme.accent)
                    canvas.arrow(body.x, body.y, body.x + dx, body.y + dy, color)
                    if vector.label:
                        canvas.text(body.x + dx * 1.15, body.y + dy * 1.15, vector.label, color)

        parts: List[RenderableType] = [canvas, self._state_table(simulation)]
        if simulation.scene.description:
            parts.append(Text(simulation.scene.description, style=theme.muted))
        return Panel(
            Group(*parts),
            title=plain(simulation.scene.title or "Physics"),
            subtitle=f"t = {simulation.elapsed:.2f} s",
            border_style=theme.muted,
        )

    def _state_table(self, simulation: PhysicsSimulation) -> Table:
        table = Table(box=None, padding=(0, 1), header_style=self.context.theme.muted)
        table.add_column("Body")
        table.add_column("x", justify="right")
        table.add_column("y", justify="right")
        table.add_column("speed", justify="right")
        for index, body in enumerate(simulation.bodies):
            name = body.spec.label or f"{body.shape} {index + 1}"
            if body.is_static:
                name += " (static)"
            table.add_row(plain(name), f"{body.x:.0f}", f"{body.y:.0f}", f"{body.speed:.2f}")
        return table

    def animate(self, console: Console, payload: dict, seconds: float = 5.0, fps: int = 20) -> PhysicsSimulation:
        """Play a scene in place with rich Live. Returns the finished simulation."""
        simulation = PhysicsSimulation.from_payload(payload)
        steps_per_frame = max(1, round(60 / fps))
        frames = int(seconds * fps)

        with Live(self.frame(simulation), console=console, refresh_per_second=fps, transient=False) as live:
            for _ in range(frames):
                simulation.step(steps_per_frame)
                live.update(self.frame(simulation))
                time.sleep(1.0 / fps)
        logger.debug("Animated %d frames (%d steps)", frames, simulation.steps)
        return simulation

"""Pygame visualization of the learning intersection."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from .base import VisualizationStrategy
from .world import (
    CENTER,
    ROAD_WIDTH,
    STOP_OFFSET,
    WORLD_SIZE,
    CosmeticVehicle,
    IntersectionWorld,
)
from ..environment import EngineSnapshot, Phase
from ..events import LogCategory, LogEvent
from ..persistence import format_duration

logger = logging.getLogger(__name__)

try:  # pragma: no cover - optional runtime dependency
    import pygame
except Exception as exc:  # pragma: no cover - degrade gracefully
    pygame = None  # type: ignore[assignment]
    _PYGAME_IMPORT_ERROR = exc
else:  # pragma: no cover - environment dependent
    _PYGAME_IMPORT_ERROR = None

COLOR_BACKGROUND = (30, 35, 41)
COLOR_ROAD = (51, 51, 51)
COLOR_INTERSECTION = (42, 42, 42)
COLOR_LANE_MARK = (85, 85, 85)
COLOR_TEXT = (235, 235, 235)
COLOR_LIGHT_GREEN = (0, 255, 136)
COLOR_LIGHT_RED = (255, 68, 68)
COLOR_EMERGENCY = (255, 255, 255)
COLOR_CROSS = (255, 0, 0)
COLOR_BADGE = (255, 255, 255)
COLOR_BADGE_TEXT = (0, 0, 0)
COLOR_REWARD_GOOD = (76, 175, 80)
COLOR_REWARD_WARN = (255, 193, 7)
COLOR_REWARD_BAD = (255, 82, 82)
LOG_COLORS = {
    LogCategory.NORMAL: COLOR_TEXT,
    LogCategory.SWITCH: COLOR_REWARD_WARN,
    LogCategory.EXTEND: COLOR_REWARD_GOOD,
    LogCategory.ALERT: COLOR_REWARD_BAD,
}

CAR_LENGTH = 20
CAR_WIDTH = 12
PANEL_WIDTH = 360

KEY_COMMANDS = {
    "space": "pause",
    "r": "reset",
    "+": "faster",
    "=": "faster",
    "-": "slower",
    "s": "save",
    "q": "quit",
    "escape": "quit",
}


def reward_color(value: float, good: float, warn: float) -> tuple[int, int, int]:
    if value > good:
        return COLOR_REWARD_GOOD
    if value > warn:
        return COLOR_REWARD_WARN
    return COLOR_REWARD_BAD


class PygameVisualization(VisualizationStrategy):
    """Render the intersection, cosmetic vehicles and the decision log."""

    def __init__(self, scale: float = 1.5, fps: int = 60) -> None:
        if pygame is None:  # pragma: no cover - executed when dependency missing
            raise RuntimeError(
                "pygame is required for PygameVisualization but could not be imported"
            ) from _PYGAME_IMPORT_ERROR

        pygame.init()
        self.scale = scale
        self.fps = fps
        self.world_px = int(WORLD_SIZE * scale)
        self.surface = pygame.display.set_mode((self.world_px + PANEL_WIDTH, self.world_px))
        pygame.display.set_caption("Learning Traffic - Q-learning intersection")
        self.clock = pygame.time.Clock()
        self.font_small = pygame.font.Font(None, 18)
        self.font_label = pygame.font.Font(None, 22)
        self.font_badge = pygame.font.Font(None, 16)

    def _px(self, value: float) -> int:
        return int(value * self.scale)

    def _draw_roads(self) -> None:
        half = ROAD_WIDTH / 2
        vertical = pygame.Rect(self._px(CENTER - half), 0, self._px(ROAD_WIDTH), self.world_px)
        horizontal = pygame.Rect(0, self._px(CENTER - half), self.world_px, self._px(ROAD_WIDTH))
        pygame.draw.rect(self.surface, COLOR_ROAD, vertical)
        pygame.draw.rect(self.surface, COLOR_ROAD, horizontal)

        dash, gap = self._px(10), self._px(10)
        mid = self._px(CENTER)
        position = 0
        while position < self.world_px:
            end = min(position + dash, self.world_px)
            pygame.draw.line(self.surface, COLOR_LANE_MARK, (mid, position), (mid, end), 2)
            pygame.draw.line(self.surface, COLOR_LANE_MARK, (position, mid), (end, mid), 2)
            position += dash + gap

        box = pygame.Rect(
            self._px(CENTER - half), self._px(CENTER - half), self._px(ROAD_WIDTH), self._px(ROAD_WIDTH)
        )
        pygame.draw.rect(self.surface, COLOR_INTERSECTION, box)

    def _draw_vehicle(self, vehicle: CosmeticVehicle) -> None:
        dx, dy = vehicle.heading
        length, width = self._px(CAR_LENGTH), self._px(CAR_WIDTH)
        size = (length, width) if dx else (width, length)
        body = pygame.Rect(0, 0, *size)
        body.center = (self._px(vehicle.x), self._px(vehicle.y))

        if vehicle.emergency:
            pygame.draw.rect(self.surface, COLOR_EMERGENCY, body, border_radius=4)
            bar = max(2, self._px(2))
            pygame.draw.rect(self.surface, COLOR_CROSS, body.inflate(-body.width + bar * 2, -4))
            pygame.draw.rect(self.surface, COLOR_CROSS, body.inflate(-4, -body.height + bar * 2))
            if (pygame.time.get_ticks() // 200) % 2 == 0:
                halo = pygame.Surface((self._px(30), self._px(30)), flags=pygame.SRCALPHA)
                pygame.draw.circle(halo, (255, 0, 0, 128), halo.get_rect().center, self._px(15))
                self.surface.blit(halo, halo.get_rect(center=body.center))
            return

        color = pygame.Color(0)
        color.hsla = (vehicle.hue % 360, 70, 50, 100)
        pygame.draw.rect(self.surface, color, body, border_radius=4)

    def _draw_light(self, lane: str, snapshot: EngineSnapshot) -> None:
        offsets = {
            "north": (CENTER, CENTER - STOP_OFFSET),
            "south": (CENTER, CENTER + STOP_OFFSET),
            "west": (CENTER - STOP_OFFSET, CENTER),
            "east": (CENTER + STOP_OFFSET, CENTER),
        }
        x, y = offsets[lane]
        view = snapshot.lanes[lane]
        center = (self._px(x), self._px(y))
        pygame.draw.circle(
            self.surface, COLOR_LIGHT_GREEN if view.green else COLOR_LIGHT_RED, center, self._px(10)
        )
        if view.queue > 0:
            badge = (center[0] + self._px(12), center[1] - self._px(12))
            pygame.draw.circle(self.surface, COLOR_BADGE, badge, self._px(9))
            text = self.font_badge.render(str(view.queue), True, COLOR_BADGE_TEXT)
            self.surface.blit(text, text.get_rect(center=badge))

    def _draw_stats(self, snapshot: EngineSnapshot, log: Sequence[LogEvent]) -> None:
        left = self.world_px + 16
        stats = snapshot.emergency_stats
        lines: List[tuple[str, tuple[int, int, int]]] = [
            (f"SESSION: {format_duration(snapshot.session_time)}", COLOR_TEXT),
            (f"TIME: {snapshot.time}s  SPEED: x{snapshot.sim_speed:g}", COLOR_TEXT),
            (f"PHASE: {snapshot.phase.value}", COLOR_REWARD_GOOD if snapshot.phase is Phase.NS else COLOR_REWARD_WARN),
            (f"PRESSURE: NS:{snapshot.pressure[Phase.NS]} | EW:{snapshot.pressure[Phase.EW]}", COLOR_TEXT),
            (f"TOTAL WAIT: {snapshot.total_wait}", COLOR_TEXT),
            (
                "  ".join(f"{lane[0].upper()}: {view.queue}" for lane, view in snapshot.lanes.items()),
                COLOR_TEXT,
            ),
            (
                f"AI SCORE: {snapshot.cumulative_reward:g}",
                reward_color(snapshot.cumulative_reward, -500, -2000),
            ),
            (
                f"AVG REWARD/s: {snapshot.average_reward:.2f}",
                reward_color(snapshot.average_reward, 0, -2),
            ),
            (f"AMBULANCES crossed {stats.crossed} crashed {stats.crashed} waited {stats.waited}", COLOR_TEXT),
        ]
        if snapshot.emergency_active and snapshot.emergency_lane is not None:
            lines.append((f"EMERGENCY: {snapshot.emergency_lane.upper()}", COLOR_REWARD_BAD))
        if snapshot.paused:
            lines.append(("PAUSED (space to resume)", COLOR_REWARD_WARN))

        y = 16
        for text, color in lines:
            self.surface.blit(self.font_label.render(text, True, color), (left, y))
            y += 24

        y += 8
        for entry in log:
            text = f"[{entry.timestamp}s] {entry.message}"
            self.surface.blit(self.font_small.render(text, True, LOG_COLORS[entry.category]), (left, y))
            y += 18

    def poll_commands(self) -> List[str]:
        """Translate pending pygame events into engine commands."""

        commands: List[str] = []
        for event in pygame.event.get():  # pragma: no cover - interactive loop
            if event.type == pygame.QUIT:
                commands.append("quit")
            elif event.type == pygame.KEYDOWN:
                name = pygame.key.name(event.key)
                command = KEY_COMMANDS.get(event.unicode) or KEY_COMMANDS.get(name)
                if command:
                    commands.append(command)
        return commands

    def render(self, context: Dict[str, object]) -> None:
        snapshot = context.get("snapshot")
        world = context.get("world")
        log = context.get("log", [])
        if not isinstance(snapshot, EngineSnapshot):
            logger.debug("Skipping render before the engine is initialised")
            return

        self.surface.fill(COLOR_BACKGROUND)
        self._draw_roads()
        if isinstance(world, IntersectionWorld):
            for vehicle in world.vehicles:
                self._draw_vehicle(vehicle)
        for lane in snapshot.lanes:
            self._draw_light(lane, snapshot)
        self._draw_stats(snapshot, log)  # type: ignore[arg-type]
        pygame.display.flip()
        self.clock.tick(self.fps)

    def close(self) -> None:
        if pygame is not None:
            pygame.quit()

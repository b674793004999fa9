from __future__ import annotations

import time

import pygame

from grovegen.biome.classifier import BiomeCategory, BiomeClassifier
from grovegen.core.diagnostics import CollectingSink, LoggingSink, get_logger
from grovegen.core.env import _env_seed
from grovegen.core.prng import Mulberry32
from grovegen.generation.chunk import Chunk, ChunkCoord, ChunkGenerator, GeneratorConfig
from grovegen.generation.streaming import ChunkStreamer, StreamingParams
from grovegen.species.recipe import SpeciesId
from grovegen.terrain.terrain import CoastalTerrain, TerrainParams

logger = get_logger(__name__)

SPECIES_COLORS: dict[SpeciesId, tuple[int, int, int]] = {
    SpeciesId.OAK: (72, 128, 52),
    SpeciesId.PINE: (34, 92, 60),
    SpeciesId.WILLOW: (140, 170, 80),
    SpeciesId.BIRCH: (210, 214, 180),
    SpeciesId.PALM: (200, 170, 70),
    SpeciesId.MAPLE: (190, 80, 40),
    SpeciesId.SPRUCE: (20, 70, 56),
}

BIOME_COLORS: dict[BiomeCategory, tuple[int, int, int]] = {
    BiomeCategory.WATER: (24, 90, 140),
    BiomeCategory.BEACH: (214, 196, 150),
    BiomeCategory.SCRUB: (120, 130, 70),
    BiomeCategory.FOREST_EDGE: (66, 100, 48),
    BiomeCategory.DEEP_FOREST: (36, 70, 36),
}

# Ground colour resolution inside one chunk tile.
TILE_STEPS = 16


def _random_seed() -> int:
    t = time.time_ns() & 0xFFFFFFFF
    return Mulberry32(t).random_u32()


def _ground_tile(
    chunk: Chunk, terrain: CoastalTerrain, classifier: BiomeClassifier
) -> pygame.Surface:
    tile = pygame.Surface((TILE_STEPS, TILE_STEPS))
    step = chunk.size / TILE_STEPS
    ox, oz = chunk.origin
    for r in range(TILE_STEPS):
        for c in range(TILE_STEPS):
            h = terrain.height_at(ox + (c + 0.5) * step, oz + (r + 0.5) * step)
            tile.set_at((c, r), BIOME_COLORS[classifier.classify(h).category])
    return tile


def run() -> None:
    pygame.init()
    pygame.display.set_caption("grovegen forest preview")

    screen = pygame.display.set_mode((1200, 800), pygame.RESIZABLE)
    clock = pygame.time.Clock()
    font = pygame.font.SysFont(None, 18)

    # GROVEGEN_SEED pins the first world; R always rolls a fresh one.
    fixed = _env_seed("GROVEGEN_SEED")
    seed = _random_seed() if fixed is None else fixed
    diagnostics = CollectingSink(forward=LoggingSink())

    def build(seed: int) -> tuple[CoastalTerrain, ChunkStreamer]:
        terrain = CoastalTerrain(TerrainParams(seed=seed))
        config = GeneratorConfig.from_env(seed=seed)
        logger.info("building world for seed %d", seed)
        generator = ChunkGenerator(terrain, config, sink=diagnostics)
        return terrain, ChunkStreamer(generator, StreamingParams.from_env())

    terrain, streamer = build(seed)
    classifier = BiomeClassifier()
    tiles: dict[ChunkCoord, pygame.Surface] = {}

    # Start just inland of the coast.
    cam_x = -150.0
    cam_z = 0.0
    zoom = 2.0  # pixels per world unit
    dragging = False
    last_mouse = (0, 0)

    running = True
    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.VIDEORESIZE:
                screen = pygame.display.set_mode((event.w, event.h), pygame.RESIZABLE)
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_r:
                    streamer.close()
                    seed = _random_seed()
                    terrain, streamer = build(seed)
                    tiles.clear()
            elif event.type == pygame.MOUSEBUTTONDOWN:
                if event.button == 1:
                    dragging = True
                    last_mouse = event.pos
                elif event.button == 4:
                    zoom = min(12.0, zoom * 1.1)
                elif event.button == 5:
                    zoom = max(0.4, zoom / 1.1)
            elif event.type == pygame.MOUSEBUTTONUP:
                if event.button == 1:
                    dragging = False
            elif event.type == pygame.MOUSEMOTION and dragging:
                mx, my = event.pos
                lx, ly = last_mouse
                cam_x -= (mx - lx) / zoom
                cam_z -= (my - ly) / zoom
                last_mouse = event.pos

        keys = pygame.key.get_pressed()
        pan = 6.0 / zoom
        if keys[pygame.K_LEFT]:
            cam_x -= pan
        if keys[pygame.K_RIGHT]:
            cam_x += pan
        if keys[pygame.K_UP]:
            cam_z -= pan
        if keys[pygame.K_DOWN]:
            cam_z += pan

        streamer.update(cam_x, cam_z)
        for chunk in streamer.drain():
            tiles[chunk.coord] = _ground_tile(chunk, terrain, classifier)
        for coord in [c for c in tiles if c not in streamer.loaded]:
            del tiles[coord]

        w, h = screen.get_size()
        screen.fill((12, 18, 16))

        def to_screen(x: float, z: float) -> tuple[int, int]:
            return (int((x - cam_x) * zoom + w * 0.5), int((z - cam_z) * zoom + h * 0.5))

        instance_count = 0
        blade_count = 0
        vertex_count = 0
        for coord, chunk in streamer.loaded.items():
            ox, oz = chunk.origin
            sx, sy = to_screen(ox, oz)
            px = max(1, int(chunk.size * zoom) + 1)
            tile = tiles.get(coord)
            if tile is not None:
                screen.blit(pygame.transform.scale(tile, (px, px)), (sx, sy))
            if chunk.truncated:
                pygame.draw.rect(screen, (220, 60, 50), (sx, sy, px, px), 1)

            for inst in chunk.instances:
                x, _, z = inst.position
                radius = max(1, int(inst.scale * zoom * 1.2))
                pygame.draw.circle(
                    screen, SPECIES_COLORS[inst.species], to_screen(x, z), radius
                )
            instance_count += len(chunk.instances)
            blade_count += chunk.grass_blades
            vertex_count += chunk.vertex_count

        fps = clock.get_fps()
        hud_lines = [
            f"seed: {seed}",
            f"chunks: {len(streamer.loaded)} loaded, {streamer.pending} pending",
            f"trees: {instance_count} | blades: {blade_count} | vertices: {vertex_count}",
            f"diagnostics: {len(diagnostics.items)}",
            "controls: drag LMB or arrows pan, wheel zoom, R regenerate",
            f"fps: {fps:0.1f}",
        ]
        y = 10
        for line in hud_lines:
            surf = font.render(line, True, (230, 245, 238))
            screen.blit(surf, (10, y))
            y += 18

        pygame.display.flip()
        clock.tick(60)

    streamer.close()
    pygame.quit()

"""
Tests for directional moves: translation, merging and the spawn that follows.
"""

import pytest

from grid_engine import DIRECTION, GameProgressState, GridEngine, InvalidInput


def load(grid, seed=0, win_tile=2048):
    engine = GridEngine(size=len(grid), win_tile=win_tile, seed=seed)
    engine.load_board(grid)
    return engine


def values_without(snapshot, spawned):
    """Board rows with the spawned tile blanked out."""
    grid = snapshot.grid
    if spawned is not None:
        grid[spawned.y][spawned.x] = 0
    return grid


EMPTY_ROW = [0, 0, 0, 0]


class TestMergeRules:
    """Test merge mechanics."""

    def test_equal_pair_merges_left(self):
        """Two 2-tiles moved left become one 4-tile at the left edge."""
        engine = load([[2, 2, 0, 0], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])

        result = engine.move(DIRECTION.LEFT)

        assert result.moved
        assert result.score_gain == 4
        assert result.merges == 1
        assert result.board.tile_at(0, 0).value == 4
        assert result.spawned is not None
        assert result.spawned.position != (0, 0)
        assert len(result.board.tiles) == 2

    def test_merged_tile_records_sources(self):
        """The merged tile gets a fresh id and lists the two ids it consumed."""
        engine = load([[2, 2, 0, 0], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])
        before = engine.snapshot()
        left_id = before.tile_at(0, 0).id
        right_id = before.tile_at(1, 0).id

        result = engine.move("left")
        merged = result.board.tile_at(0, 0)

        assert set(merged.merged_from) == {left_id, right_id}
        assert merged.id not in (left_id, right_id)
        assert merged.previous_position is None

    def test_different_values_do_not_merge(self):
        """Adjacent tiles of different value against the wall do not move at all."""
        engine = load([[2, 4, 0, 0], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])
        before = engine.snapshot()

        result = engine.move(DIRECTION.LEFT)

        assert not result.moved
        assert result.score_gain == 0
        assert result.spawned is None
        assert result.board.grid == before.grid
        assert [t.id for t in result.board.tiles] == [t.id for t in before.tiles]

    def test_merged_tile_does_not_merge_again(self):
        """[2, 2, 4] moved left gives [4, 4], never 8."""
        engine = load([[2, 2, 4, 0], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])

        result = engine.move(DIRECTION.LEFT)

        assert result.board.tile_at(0, 0).value == 4
        assert result.board.tile_at(1, 0).value == 4
        assert result.score_gain == 4
        assert result.merges == 1

    def test_full_row_merges_pairwise(self):
        """[2, 2, 2, 2] moved left gives [4, 4]."""
        engine = load([[2, 2, 2, 2], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])

        result = engine.move(DIRECTION.LEFT)

        row = values_without(result.board, result.spawned)[0]
        assert row == [4, 4, 0, 0]
        assert result.score_gain == 8
        assert result.merges == 2

    def test_farthest_pair_merges_first(self):
        """[2, 2, 2, 0] moved right merges the two rightmost tiles."""
        engine = load([[2, 2, 2, 0], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])

        result = engine.move(DIRECTION.RIGHT)

        row = values_without(result.board, result.spawned)[0]
        assert row == [0, 0, 2, 4]
        assert result.score_gain == 4

    def test_vertical_moves(self):
        """Columns slide and merge the same way rows do."""
        grid = [
            [2, 0, 0, 8],
            [0, 0, 0, 0],
            [2, 0, 0, 0],
            [0, 0, 0, 8],
        ]
        engine = load(grid)

        result = engine.move(DIRECTION.DOWN)
        after = values_without(result.board, result.spawned)

        assert after[3][0] == 4
        assert after[3][3] == 16
        assert result.score_gain == 20

        engine = load(grid)
        result = engine.move(DIRECTION.UP)
        after = values_without(result.board, result.spawned)

        assert after[0][0] == 4
        assert after[0][3] == 16


class TestTranslation:
    """Test plain tile movement."""

    def test_tile_keeps_id_when_moving(self):
        """A sliding tile keeps its id and reports where it came from."""
        engine = load([[0, 0, 0, 8], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])
        tile_id = engine.snapshot().tile_at(3, 0).id

        result = engine.move(DIRECTION.LEFT)
        moved_tile = result.board.tile_at(0, 0)

        assert result.moved
        assert moved_tile.id == tile_id
        assert moved_tile.previous_position == (3, 0)
        assert result.score_gain == 0

    def test_blocked_direction_does_not_spawn(self):
        """A move that changes nothing leaves the board and ids untouched."""
        engine = load([[2, 0, 0, 0], [4, 0, 0, 0], EMPTY_ROW, EMPTY_ROW])
        before = engine.snapshot()

        result = engine.move(DIRECTION.LEFT)

        assert not result.moved
        assert result.spawned is None
        assert [t.id for t in result.board.tiles] == [t.id for t in before.tiles]

    def test_repeated_move_is_idempotent(self):
        """With the spawn removed, repeating a move with no merges left changes nothing."""
        grid = [
            [0, 2, 0, 4],
            [8, 0, 16, 0],
            [0, 0, 0, 32],
            [2, 0, 4, 8],
        ]
        engine = load(grid)
        result = engine.move(DIRECTION.LEFT)

        engine = load(values_without(result.board, result.spawned))
        again = engine.move(DIRECTION.LEFT)

        assert not again.moved


class TestWinAndGameOver:
    """Test terminal-state flags."""

    def test_merging_to_target_wins(self):
        """Two 1024s merging into 2048 set won and score 2048."""
        engine = load([[1024, 1024, 0, 0], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])

        result = engine.move(DIRECTION.LEFT)

        assert result.won
        assert result.score_gain == 2048
        assert result.progress == GameProgressState.GAME_WON

    def test_won_is_sticky(self):
        """Play may continue past the target and won stays set."""
        engine = load([[1024, 1024, 0, 0], EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])
        engine.move(DIRECTION.LEFT)

        result = engine.move(DIRECTION.RIGHT)

        assert result.moved
        assert result.won

    def test_custom_win_tile(self):
        engine = load([[16, 16], [0, 0]], win_tile=32)

        result = engine.move(DIRECTION.LEFT)

        assert result.won

    def test_full_board_without_pairs_is_over(self):
        """A full board with no equal neighbours is over and no direction moves it."""
        engine = load([
            [2, 4, 2, 4],
            [4, 2, 4, 2],
            [2, 4, 2, 4],
            [4, 2, 4, 2],
        ])

        assert engine.over
        for direction in DIRECTION:
            result = engine.move(direction)
            assert not result.moved
            assert result.over
            assert result.progress == GameProgressState.GAME_OVER

    def test_full_board_with_pair_is_not_over(self):
        engine = load([
            [2, 4, 2, 4],
            [4, 2, 4, 2],
            [2, 4, 2, 4],
            [4, 2, 4, 4],
        ])

        assert not engine.over
        assert engine.move(DIRECTION.RIGHT).moved

    def test_move_that_fills_board_ends_game(self):
        """The only empty cell is filled by the spawn and no pair remains."""
        engine = load([[4, 8], [0, 16]])

        result = engine.move(DIRECTION.LEFT)

        assert result.moved
        assert result.spawned.position == (1, 1)
        assert result.over

    def test_move_after_game_over_is_noop(self):
        engine = load([[4, 8], [0, 16]])
        engine.move(DIRECTION.LEFT)
        before = engine.snapshot()

        result = engine.move(DIRECTION.UP)

        assert not result.moved
        assert result.score_gain == 0
        assert result.board == before


class TestDirections:
    """Test direction validation."""

    @pytest.mark.parametrize("bad", ["diagonal", "", None, 3])
    def test_invalid_direction_raises(self, bad):
        engine = load([[2, 0], [0, 0]])

        with pytest.raises(InvalidInput):
            engine.move(bad)

    def test_invalid_direction_raises_after_game_over(self):
        """Bad input is reported even when the move itself would be a no-op."""
        engine = load([[2, 4], [4, 2]])

        with pytest.raises(InvalidInput):
            engine.move("sideways")

    def test_invalid_input_is_value_error(self):
        engine = load([[2, 0], [0, 0]])

        with pytest.raises(ValueError):
            engine.move("north")

"""Unit tests for /src/chess/game.py"""

import random

import pytest

from src.chess.fen import STARTING_FEN
from src.chess.game import Game, GameStatus, MoveResult, parse_promotion
from src.chess.moves import MoveError
from src.chess.pieces import Color, PieceType
from src.chess.square import Square
from src.core.exceptions import GameStateError, MalformedFENError

AFTER_E4_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
CASTLING_FEN = "r3k2r/pppppppp/8/8/8/8/PPPPPPPP/R3K2R w KQkq - 0 1"
KNIGHT_SHUFFLE = ["g1f3", "g8f6", "f3g1", "f6g8"]


def play(game: Game, *moves_uci: str) -> MoveResult:
    """Play the moves one by one, they should all succeed. Returns the result of the last one."""
    result = MoveResult(success=False)
    for uci in moves_uci:
        result = game.make_move(uci[:2], uci[2:4], uci[4:] or None)
        assert result.success, f"{uci}: {result.error}"
    return result


@pytest.fixture
def game() -> Game:
    return Game.new_game()


# --- STARTING A GAME ---
def test_new_game(game: Game) -> None:
    assert game.get_fen() == STARTING_FEN
    assert game.current_turn == Color.WHITE
    assert game.status == GameStatus.ACTIVE
    assert game.moves == []
    assert len(game.position_history) == 1
    assert not game.is_over
    assert game.winner is None


@pytest.mark.parametrize(
    "fen",
    [
        STARTING_FEN,
        AFTER_E4_FEN,
        CASTLING_FEN,
        "r3k2r/8/8/8/8/8/8/R3K2R w Kq - 5 20",
        "4k3/8/8/8/8/8/8/4K3 b - - 0 1",
        "rnbqkb1r/pp1ppppp/5n2/2pP4/8/8/PPP1PPPP/RNBQKBNR w KQkq c6 0 3",
    ],
)
def test_fen_round_trip(fen: str) -> None:
    assert Game.from_fen(fen).get_fen() == fen


def test_castling_rights_need_pieces_on_their_home_squares() -> None:
    """A right in the FEN is dropped when the king or rook is not where castling needs it"""
    game = Game.from_fen("r3k2r/8/8/8/8/8/8/R2K3R w KQkq - 0 1")
    assert game.get_fen() == "r3k2r/8/8/8/8/8/8/R2K3R w kq - 0 1"


def test_missing_castling_right_is_respected() -> None:
    game = Game.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w Kq - 0 1")
    assert game.make_move("e1", "c1").error == MoveError.ILLEGAL_SHAPE
    assert game.make_move("e1", "g1").success


def test_load_fen_replaces_game(game: Game) -> None:
    play(game, "e2e4")
    game.load_fen("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
    assert game.moves == []
    assert len(game.position_history) == 1
    assert game.initial_fen == "4k3/8/8/8/8/8/8/4K3 w - - 0 1"
    assert game.status == GameStatus.DRAW_INSUFFICIENT_MATERIAL


@pytest.mark.parametrize(
    "fen",
    [
        "nonsense",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0",  # 5 fields
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP w KQkq - 0 1",  # 7 ranks
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR g KQkq - 0 1",  # color
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w XQkq - 0 1",  # castling
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq e9 0 1",  # en passant
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - zero 1",  # counter
    ],
)
def test_failed_load_leaves_game_untouched(game: Game, fen: str) -> None:
    play(game, "e2e4")
    with pytest.raises(MalformedFENError):
        game.load_fen(fen)
    assert game.get_fen() == AFTER_E4_FEN
    assert game.move_notations() == ["e4"]


# --- MAKING MOVES ---
def test_first_move(game: Game) -> None:
    result = play(game, "e2e4")
    assert result.move is not None
    assert result.move.notation == "e4"
    assert result.status == GameStatus.ACTIVE
    assert game.get_fen() == AFTER_E4_FEN
    assert game.current_turn == Color.BLACK


def test_accepts_square_objects(game: Game) -> None:
    result = game.make_move(Square.from_algebraic("g1"), Square.from_algebraic("f3"))
    assert result.success
    assert result.move is not None and result.move.notation == "Nf3"


@pytest.mark.parametrize(
    "from_square, to_square",
    [
        ("e7", "e5"),  # black piece on white's turn
        ("e4", "e5"),  # nothing there
    ],
)
def test_wrong_turn(game: Game, from_square: str, to_square: str) -> None:
    result = game.make_move(from_square, to_square)
    assert not result.success
    assert result.error == MoveError.WRONG_TURN
    assert game.get_fen() == STARTING_FEN


def test_moving_as_the_wrong_color(game: Game) -> None:
    result = game.make_move("e2", "e4", as_color=Color.BLACK)
    assert result.error == MoveError.WRONG_TURN
    assert game.make_move("e2", "e4", as_color=Color.WHITE).success


@pytest.mark.parametrize("from_square, to_square", [("z9", "e4"), ("e2", "e44"), ("", "")])
def test_malformed_coordinates(game: Game, from_square: str, to_square: str) -> None:
    result = game.make_move(from_square, to_square)
    assert result.error == MoveError.MALFORMED_COORDINATE
    assert game.get_fen() == STARTING_FEN


def test_illegal_shape(game: Game) -> None:
    result = game.make_move("e2", "e5")
    assert result.error == MoveError.ILLEGAL_SHAPE
    assert game.moves == []


def test_cannot_leave_king_in_check() -> None:
    game = Game.from_fen("4k3/4r3/8/8/8/8/4B3/4K3 w - - 0 1")
    assert game.make_move("e2", "d3").error == MoveError.SELF_CHECK


def test_cannot_castle_through_check() -> None:
    game = Game.from_fen("4k3/8/8/8/8/5r2/8/R3K2R w KQ - 0 1")
    assert game.make_move("e1", "g1").error == MoveError.SELF_CHECK
    result = game.make_move("e1", "c1")
    assert result.success
    assert result.move is not None and result.move.notation == "O-O-O"


def test_counters(game: Game) -> None:
    play(game, "g1f3")
    assert (game.half_move_clock, game.full_move_number) == (1, 1)
    play(game, "g8f6")
    assert (game.half_move_clock, game.full_move_number) == (2, 2)
    play(game, "e2e4")
    assert (game.half_move_clock, game.full_move_number) == (0, 2)
    play(game, "f6e4")
    assert (game.half_move_clock, game.full_move_number) == (0, 3)


# --- SPECIAL MOVES ---
def test_castling(game: Game) -> None:
    game.load_fen(CASTLING_FEN)
    result = play(game, "e1g1")
    assert result.move is not None
    assert result.move.is_castling
    assert result.move.notation == "O-O"
    assert game.get_fen() == "r3k2r/pppppppp/8/8/8/8/PPPPPPPP/R4RK1 b kq - 1 1"


def test_king_move_revokes_castling_rights(game: Game) -> None:
    play(game, "e2e4", "e7e5", "e1e2")
    assert game.get_fen().split()[2] == "kq"


def test_rook_move_revokes_one_castling_right() -> None:
    game = Game.from_fen(CASTLING_FEN)
    play(game, "h1g1")
    assert game.get_fen().split()[2] == "Qkq"


def test_en_passant(game: Game) -> None:
    play(game, "e2e4", "a7a6", "e4e5", "d7d5")
    assert game.get_fen().split()[3] == "d6"

    result = play(game, "e5d6")
    assert result.move is not None
    assert result.move.is_en_passant
    assert result.move.notation == "exd6"
    assert game.board.piece_at(Square.from_algebraic("d5")) is None
    assert game.captured_pieces()[Color.WHITE] == [PieceType.PAWN]


def test_en_passant_expires_after_one_move(game: Game) -> None:
    play(game, "e2e4", "a7a6", "e4e5", "d7d5", "h2h3", "a6a5")
    assert game.make_move("e5", "d6").error == MoveError.ILLEGAL_SHAPE


@pytest.mark.parametrize(
    "choice, piece_type, notation",
    [
        (PieceType.QUEEN, PieceType.QUEEN, "a8=Q+"),
        ("R", PieceType.ROOK, "a8=R+"),
        ("b", PieceType.BISHOP, "a8=B"),
        ("N", PieceType.KNIGHT, "a8=N"),
        ("x", PieceType.QUEEN, "a8=Q+"),  # unknown choice: a queen it is
        (None, PieceType.QUEEN, "a8=Q+"),
    ],
)
def test_promotion(choice: PieceType | str | None, piece_type: PieceType, notation: str) -> None:
    game = Game.from_fen("8/P7/8/8/8/8/8/k3K3 w - - 0 1")
    result = game.make_move("a7", "a8", choice)
    assert result.success
    assert result.move is not None
    assert result.move.promoted_to == piece_type
    assert result.move.notation == notation
    promoted = game.board.piece_at(Square.from_algebraic("a8"))
    assert promoted is not None and promoted.type == piece_type


def test_parse_promotion() -> None:
    assert parse_promotion(None) == PieceType.QUEEN
    assert parse_promotion(PieceType.ROOK) == PieceType.ROOK
    assert parse_promotion("n") == PieceType.KNIGHT
    assert parse_promotion("Q") == PieceType.QUEEN
    assert parse_promotion("?") == PieceType.QUEEN


def test_disambiguation_in_notation() -> None:
    game = Game.from_fen("4k3/8/8/8/8/5N2/8/1N2K3 w - - 0 1")
    result = play(game, "b1d2")
    assert result.move is not None and result.move.notation == "Nbd2"


# --- GAME STATUS ---
def test_attacking_next_to_the_king_is_no_check(game: Game) -> None:
    """Qh5 eyes f7, but the king on e8 is shielded by the pawn"""
    result = play(game, "e2e4", "e7e5", "d1h5")
    assert result.status == GameStatus.ACTIVE
    assert result.move is not None and result.move.notation == "Qh5"


def test_scholars_mate(game: Game) -> None:
    result = play(game, "e2e4", "e7e5", "d1h5", "b8c6", "f1c4", "g8f6", "h5f7")
    assert result.move is not None
    assert result.move.notation == "Qxf7#"
    assert game.status == GameStatus.CHECKMATE_WHITE
    assert game.is_over
    assert game.winner == Color.WHITE
    assert game.pgn_move_text() == "1. e4 e5 2. Qh5 Nc6 3. Bc4 Nf6 4. Qxf7# 1-0"


def test_fools_mate(game: Game) -> None:
    play(game, "f2f3", "e7e5", "g2g4", "d8h4")
    assert game.status == GameStatus.CHECKMATE_BLACK
    assert game.winner == Color.BLACK
    assert game.pgn_move_text() == "1. f3 e5 2. g4 Qh4# 0-1"


def test_check() -> None:
    game = Game.from_fen("4k3/8/8/8/8/8/8/R3K3 w - - 0 1")
    result = play(game, "a1a8")
    assert result.status == GameStatus.CHECK
    assert result.move is not None and result.move.notation == "Ra8+"
    assert not game.is_over


def test_stalemate() -> None:
    game = Game.from_fen("k7/8/1Q6/8/8/8/8/2K5 b - - 0 1")
    assert game.status == GameStatus.DRAW_STALEMATE
    assert game.is_over
    assert game.winner is None
    assert game.pgn_move_text() == "1/2-1/2"


def test_bare_kings() -> None:
    game = Game.from_fen("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
    assert game.status == GameStatus.DRAW_INSUFFICIENT_MATERIAL


def test_capturing_last_piece_is_a_draw() -> None:
    game = Game.from_fen("4k3/8/8/8/8/8/3q4/4K3 w - - 0 1")
    assert game.status == GameStatus.CHECK
    result = play(game, "e1d2")
    assert result.move is not None and result.move.notation == "Kxd2"
    assert game.status == GameStatus.DRAW_INSUFFICIENT_MATERIAL


def test_threefold_repetition(game: Game) -> None:
    """The starting position occurs for the 3rd time after the knights went out and back twice"""
    for uci in KNIGHT_SHUFFLE + KNIGHT_SHUFFLE[:-1]:
        play(game, uci)
        assert game.status == GameStatus.ACTIVE

    play(game, KNIGHT_SHUFFLE[-1])
    assert game.status == GameStatus.DRAW_REPETITION
    assert game.pgn_move_text().endswith("1/2-1/2")


def test_fifty_move_rule() -> None:
    game = Game.from_fen("4k3/8/8/8/8/8/8/R3K3 w - - 98 80")
    play(game, "a1a2")
    assert game.status == GameStatus.ACTIVE
    play(game, "e8d8")
    assert game.half_move_clock == 100
    assert game.status == GameStatus.DRAW_FIFTY_MOVE


def test_pawn_move_resets_fifty_move_count() -> None:
    game = Game.from_fen("4k3/8/8/8/8/8/P7/R3K3 w - - 99 80")
    play(game, "a2a3")
    assert game.half_move_clock == 0
    assert game.status == GameStatus.ACTIVE


# --- UNDO / RESET ---
def test_undo_without_moves(game: Game) -> None:
    assert not game.undo_last_move()
    assert game.get_fen() == STARTING_FEN


def test_undo_first_move(game: Game) -> None:
    play(game, "e2e4")
    assert game.undo_last_move()
    assert game.get_fen() == STARTING_FEN
    assert game.moves == []
    assert len(game.position_history) == 1


@pytest.mark.parametrize(
    "fen, moves_uci",
    [
        (STARTING_FEN, ["e2e4", "a7a6", "e4e5", "d7d5", "e5d6"]),  # en passant
        (CASTLING_FEN, ["e1g1"]),
        (CASTLING_FEN, ["e1c1", "e8g8"]),
        ("8/P7/8/8/8/8/8/k3K3 w - - 0 1", ["a7a8n"]),
        (STARTING_FEN, ["e2e4", "e7e5", "d1h5", "b8c6", "f1c4", "g8f6", "h5f7"]),
    ],
)
def test_undo_restores_exact_position(fen: str, moves_uci: list[str]) -> None:
    game = Game.from_fen(fen)
    play(game, *moves_uci[:-1])
    fen_before = game.get_fen()
    status_before = game.status

    play(game, moves_uci[-1])
    assert game.undo_last_move()
    assert game.get_fen() == fen_before
    assert game.status == status_before
    assert len(game.moves) == len(moves_uci) - 1
    assert len(game.position_history) == len(moves_uci)


def test_reset(game: Game) -> None:
    play(game, "e2e4", "e7e5")
    game.reset()
    assert game.get_fen() == STARTING_FEN
    assert game.moves == []
    assert game.status == GameStatus.ACTIVE


def test_reset_returns_to_loaded_position() -> None:
    game = Game.from_fen(CASTLING_FEN)
    play(game, "e1g1")
    game.reset()
    assert game.get_fen() == CASTLING_FEN


# --- HISTORY ---
def test_history(game: Game) -> None:
    play(game, "e2e4", "d7d5", "e4d5", "d8d5")
    assert game.move_notations() == ["e4", "d5", "exd5", "Qxd5"]
    assert game.moves_uci() == ["e2e4", "d7d5", "e4d5", "d8d5"]
    assert game.pgn_move_text() == "1. e4 d5 2. exd5 Qxd5"
    assert game.captured_pieces() == {
        Color.WHITE: [PieceType.PAWN],
        Color.BLACK: [PieceType.PAWN],
    }


def test_pgn_numbering_continues_from_loaded_position() -> None:
    game = Game.from_fen("4k3/8/8/8/8/8/4P3/4K3 b - - 0 12")
    play(game, "e8d8", "e2e4")
    assert game.pgn_move_text() == "12... Kd8 13. e4"


def test_legal_moves_for_side_not_on_turn_ignore_en_passant_square(game: Game) -> None:
    play(game, "e2e4")
    white_moves = game.legal_moves(Color.WHITE)
    assert set(white_moves["d2"]) == {"d3", "d4"}
    assert set(white_moves["f2"]) == {"f3", "f4"}


def test_legal_moves(game: Game) -> None:
    moves = game.legal_moves()
    assert sum(len(targets) for targets in moves.values()) == 20
    assert moves["g1"] == ["f3", "h3"]
    assert "e7" in game.legal_moves(Color.BLACK)


def test_replay_from_uci_moves() -> None:
    game = Game.from_uci_moves(STARTING_FEN, ["e2e4", "e7e5", "g1f3"])
    assert game.move_notations() == ["e4", "e5", "Nf3"]
    assert game.current_turn == Color.BLACK


def test_replay_rejects_impossible_history() -> None:
    with pytest.raises(GameStateError):
        Game.from_uci_moves(STARTING_FEN, ["e2e5"])


# --- PROPERTIES OVER RANDOM GAMES ---
RANDOM_GAME_SEEDS = list(range(8))
RANDOM_GAME_MAX_PLIES = 40


def assert_no_listed_move_leaves_king_in_check(game: Game) -> None:
    board = game.board
    color = game.current_turn
    for piece in board.pieces(color):
        targets = board.legal_moves_for(piece)
        assert board.legal_moves_for(piece) == targets
        for target in targets:
            after = board.clone()
            after.execute_move(piece.square, target)
            assert not after.is_king_in_check(color), (
                f"{piece.square.to_algebraic()}{target.to_algebraic()} in {game.get_fen()}"
            )


def assert_fen_reload_matches(game: Game) -> None:
    reloaded = Game.from_fen(game.get_fen())
    assert reloaded.get_fen() == game.get_fen()
    assert reloaded.board.position_signature() == game.board.position_signature()
    # a FEN carries no history to repeat
    if game.status != GameStatus.DRAW_REPETITION:
        assert reloaded.status == game.status


def assert_undo_then_replay_restores(game: Game) -> None:
    fen_before = game.get_fen()
    status_before = game.status
    last = game.moves[-1]

    assert game.undo_last_move()
    result = game.make_move(
        last.from_square, last.to_square, last.promoted_to or PieceType.QUEEN
    )
    assert result.success
    assert game.get_fen() == fen_before
    assert game.status == status_before


@pytest.mark.parametrize("seed", RANDOM_GAME_SEEDS)
def test_random_games_keep_rules_consistent(seed: int) -> None:
    """Play random legal moves and check the board after every ply"""
    rng = random.Random(seed)
    game = Game.new_game()

    for _ in range(RANDOM_GAME_MAX_PLIES):
        if game.is_over:
            break
        assert_no_listed_move_leaves_king_in_check(game)

        moves = game.board.legal_moves(game.current_turn)
        from_square = rng.choice(sorted(moves, key=Square.to_algebraic))
        to_square = rng.choice(moves[from_square])
        promote_to = rng.choice(
            [PieceType.QUEEN, PieceType.ROOK, PieceType.BISHOP, PieceType.KNIGHT]
        )
        assert game.make_move(from_square, to_square, promote_to).success

        assert_fen_reload_matches(game)
        assert_undo_then_replay_restores(game)

"""Position codec over python-chess.

Lines store moves in PCN ("piece coordinate notation"): the moving piece's
letter followed by the long-form (uci) move, e.g. ``Ng1f3``, ``Pe7e8q``,
``Ke1g1`` for castling. SAN is derived for display only.
"""
from typing import Iterable, List, Union

import chess

from fisher.errors import NotationError

MoveLike = Union[str, chess.Move]


def board_at(fen: str) -> chess.Board:
    try:
        return chess.Board(fen)
    except ValueError as e:
        raise NotationError(f"invalid FEN {fen!r}: {e}") from e


def position_key(fen: str) -> str:
    """Canonical key: placement, side to move, castling, legal en passant."""
    return board_at(fen).epd()


def to_pcn(board: chess.Board, move: chess.Move) -> str:
    piece = board.piece_at(move.from_square)
    if piece is None:
        raise NotationError(f"no piece on {chess.square_name(move.from_square)} for {move.uci()}")
    return piece.symbol().upper() + move.uci()


def parse_pcn(pcn: str, board: chess.Board) -> chess.Move:
    """Parse a PCN (or bare uci / castling SAN) move and check it is legal."""
    text = pcn.strip()
    if text in ("O-O", "O-O-O", "0-0", "0-0-0"):
        try:
            return board.parse_san(text.replace("0", "O"))
        except ValueError as e:
            raise NotationError(f"{pcn!r} is not legal in {board.fen()}") from e
    letter = None
    if len(text) in (5, 6) and text[0].upper() in "PNBRQK" and text[0].isupper():
        letter, text = text[0], text[1:]
    try:
        move = chess.Move.from_uci(text)
    except ValueError as e:
        raise NotationError(f"cannot parse move {pcn!r}") from e
    if move not in board.legal_moves:
        raise NotationError(f"{pcn!r} is not legal in {board.fen()}")
    if letter is not None:
        piece = board.piece_at(move.from_square)
        if piece is None or piece.symbol().upper() != letter:
            raise NotationError(f"{pcn!r} does not match the piece on {chess.square_name(move.from_square)}")
    return move


def to_long_form_moves(sans: Iterable[str], fen: str) -> List[str]:
    """Convert a SAN sequence played from `fen` to PCN moves."""
    board = board_at(fen)
    out = []
    for san in sans:
        try:
            move = board.parse_san(san)
        except ValueError as e:
            raise NotationError(f"{san!r} is not legal in {board.fen()}") from e
        out.append(to_pcn(board, move))
        board.push(move)
    return out


def to_standard_notation(pcn: str, fen: str) -> str:
    board = board_at(fen)
    return board.san(parse_pcn(pcn, board))


def apply_move(fen: str, move: MoveLike) -> str:
    board = board_at(fen)
    if isinstance(move, chess.Move):
        if move not in board.legal_moves:
            raise NotationError(f"{move.uci()} is not legal in {fen}")
    else:
        move = parse_pcn(move, board)
    board.push(move)
    return board.fen()


def replay(pcns: Iterable[str], fen: str) -> str:
    """Apply a PCN sequence from `fen` and return the final position."""
    board = board_at(fen)
    for pcn in pcns:
        board.push(parse_pcn(pcn, board))
    return board.fen()


def san_game(pcns: Iterable[str], fen: str) -> str:
    """Numbered SAN game string, e.g. ``1. e4 e5 2. Nf3`` or ``1... e5``."""
    board = board_at(fen)
    parts = []
    for i, pcn in enumerate(pcns):
        move = parse_pcn(pcn, board)
        if board.turn == chess.WHITE:
            parts.append(f"{board.fullmove_number}.")
        elif i == 0:
            parts.append(f"{board.fullmove_number}...")
        parts.append(board.san(move))
        board.push(move)
    return " ".join(parts)


def format_line_with_move_numbers(pcns: List[str], white_first: bool = True) -> str:
    """Number raw moves without a board, two plies per move number."""
    parts = []
    offset = 0 if white_first else 1
    for i, pcn in enumerate(pcns):
        ply = i + offset
        if ply % 2 == 0:
            parts.append(f"{ply // 2 + 1}.")
        elif i == 0:
            parts.append(f"{ply // 2 + 1}...")
        parts.append(pcn)
    return " ".join(parts)

from fisher.core.progress import ProgressSnapshot


def format_info(p: ProgressSnapshot) -> str:
    rate = f"{p.events_per_second:.1f}"
    current = p.current_line or "-"
    return (
        f"info nodes {p.nodes_reached}/{p.total_nodes} ({p.node_percent:.1f}%)"
        f" lines {p.lines_completed}/{p.expected_lines} queue {p.queue_length}"
        f" mate {p.lines_mate} stalemate {p.lines_stalemate} transposition {p.lines_transposition}"
        f" errors {p.lines_error} events {p.events_issued} eps {rate} time {p.elapsed_ms} line {current}"
    )

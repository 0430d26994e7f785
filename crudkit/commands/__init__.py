from .setup_commands import check_db_command, init_db_command

__all__ = ["check_db_command", "init_db_command"]

"""
Resource usage of the Minecraft server process.

Collects a CPU, memory, and disk snapshot for the status endpoint. The JVM
may fork helpers, so child processes are included in the totals.
"""

import logging
import os

import psutil

logger = logging.getLogger(__name__)


def get_directory_size(path) -> float:
    """Get total size of a directory in MB."""
    total = 0
    try:
        for dirpath, dirnames, filenames in os.walk(path):
            for filename in filenames:
                filepath = os.path.join(dirpath, filename)
                try:
                    total += os.path.getsize(filepath)
                except OSError:
                    pass
    except OSError:
        pass
    return total / 1024 / 1024  # Convert to MB


def get_process_metrics(pid: int) -> dict:
    """Get current resource usage for a process and its children."""
    result = {
        "cpu_percent": 0.0,
        "memory_mb": 0.0,
        "child_processes": 0,
    }
    if not pid:
        return result

    try:
        proc = psutil.Process(pid)
        cpu_percent = proc.cpu_percent(interval=0.1)
        memory_mb = proc.memory_info().rss / 1024 / 1024

        child_count = 0
        try:
            children = proc.children(recursive=True)
            child_count = len(children)
            for child in children:
                cpu_percent += child.cpu_percent(interval=0.1)
                memory_mb += child.memory_info().rss / 1024 / 1024
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass

        result.update({
            "cpu_percent": round(cpu_percent, 1),
            "memory_mb": round(memory_mb, 1),
            "child_processes": child_count,
        })
    except psutil.NoSuchProcess:
        logger.warning(f"Server process {pid} no longer exists")
    except psutil.AccessDenied:
        logger.warning(f"Access denied reading metrics for process {pid}")

    return result

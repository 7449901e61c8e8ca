from concurrent.futures import ThreadPoolExecutor


MAX_WORKERS = 8


def gather(**tasks):
    """Run independent zero-argument callables concurrently.

    Results come back keyed by the keyword each callable was passed under. The
    first exception raised by any task propagates once every task has finished.
    """
    if not tasks:
        return {}
    with ThreadPoolExecutor(max_workers=min(len(tasks), MAX_WORKERS)) as executor:
        futures = {name: executor.submit(task) for name, task in tasks.items()}
    return {name: future.result() for name, future in futures.items()}

"""RQ worker process entrypoint for SKU generation jobs."""

from rq import Worker

from services.sku_queue import SKU_QUEUE_NAME, get_redis_connection


def main():
    redis_conn = get_redis_connection()
    worker = Worker([SKU_QUEUE_NAME], connection=redis_conn)
    worker.work()


if __name__ == "__main__":
    main()

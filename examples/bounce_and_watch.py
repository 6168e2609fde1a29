"""
bounce_and_watch.py — Library-level publish-subscribe example.

Run the publisher in one terminal:
    python examples/bounce_and_watch.py publisher

Run one or more subscribers in other terminals:
    python examples/bounce_and_watch.py subscriber
"""

import sys
import time

TOPIC = "Circle"


def run_publisher():
    from shapes_interop import DomainParticipant, Shape, move_shape

    dp = DomainParticipant(0)
    topic = dp.create_topic(TOPIC)
    with dp.create_datawriter(topic, key="GREEN") as writer:
        shape, xv, yv = Shape("GREEN", 120, 135, 30), 3, -2
        while True:
            shape, xv, yv = move_shape(shape, xv, yv)
            writer.write(shape)
            print(f"  Wrote {shape}")
            time.sleep(0.1)  # 10 Hz


def run_subscriber():
    from shapes_interop import DomainParticipant, Value

    dp = DomainParticipant(0)
    topic = dp.create_topic(TOPIC)
    with dp.create_datareader(topic) as reader:
        while True:
            if not reader.poll_ready():
                time.sleep(0.05)
                continue
            while (sample := reader.take_next_sample()) is not None:
                if isinstance(sample, Value):
                    print(f"  Received {sample.shape}")
                else:
                    print(f"  Disposed {sample.key}")


if __name__ == "__main__":
    if len(sys.argv) < 2 or sys.argv[1] not in ("publisher", "subscriber"):
        print(__doc__)
        sys.exit(1)

    if sys.argv[1] == "publisher":
        run_publisher()
    else:
        run_subscriber()

"""Software Architecture category: fundamentals and microservices."""

CATEGORY = {
    "slug": "architecture",
    "name": "Software Architecture",
    "description": "Master system design from simple applications to complex distributed systems",
    "icon": "🏗️",
    "order_index": 1,
    "topics": [
        {
            "slug": "basic-architecture",
            "name": "Software Architecture Fundamentals",
            "description": "Architecture patterns, principles, and how to make informed design decisions.",
            "difficulty_level": "beginner",
            "estimated_time": 160,
            "order_index": 1,
            "lessons": [
                {
                    "slug": "what-is-software-architecture",
                    "title": "What is Software Architecture?",
                    "summary": "Separate architecture from design, survey the common patterns and weigh their trade-offs.",
                    "difficulty_level": "beginner",
                    "estimated_time": 45,
                    "order_index": 1,
                    "key_points": [
                        "Architecture is the set of decisions that are expensive to change later",
                        "Quality attributes (latency, availability, cost) drive the choice of pattern",
                        "Layered, client-server, event-driven and hexagonal are the patterns you meet most",
                        "Prefer low coupling between modules and high cohesion inside them",
                    ],
                    "content": """# What is Software Architecture?

Architecture is the high-level structure of a system: its components, the
relationships between them and the principles that govern how it evolves.

## Architecture vs design

| | Architecture | Design |
|---|---|---|
| Scope | Whole system | One component |
| Cost of change | High | Low |
| Typical question | "Do we split this service?" | "Which class owns this method?" |

## Common patterns

1. **Layered**: presentation, business logic and data access stacked on top of each other.
2. **Client-server**: thin or thick clients talking to a shared backend.
3. **Event-driven**: producers publish events, consumers react asynchronously.
4. **Hexagonal**: the domain sits in the middle, adapters plug in at the edges.

## Principles

- Separation of concerns
- Single responsibility
- Keep it simple; build what you need now
""",
                },
            ],
        },
        {
            "slug": "microservices",
            "name": "Microservices Architecture",
            "description": "Service decomposition, API gateways, service mesh and inter-service communication.",
            "difficulty_level": "advanced",
            "estimated_time": 260,
            "order_index": 5,
            "lessons": [
                {
                    "slug": "microservices-fundamentals",
                    "title": "Microservices Fundamentals",
                    "summary": "Microservices principles, decomposition strategies, and when a monolith is the better call.",
                    "difficulty_level": "advanced",
                    "estimated_time": 40,
                    "order_index": 1,
                    "prerequisites": ["what-is-software-architecture"],
                    "key_points": [
                        "Microservices are small, independently deployable services organized around business capabilities",
                        "Each service owns its data; there is no shared database",
                        "Services talk over synchronous APIs or asynchronous events",
                        "Decompose by business capability, not by technical layer",
                        "Start with a monolith and extract services when complexity demands it",
                    ],
                    "content": """# Microservices Fundamentals

## Monolith vs microservices

| | Monolith | Microservices |
|---|---|---|
| Deployment | Single unit | Independent per service |
| Scaling | All or nothing | Per service |
| Data | Shared database | Database per service |
| Team | One large team | Small team per service |
| Complexity | In the code | In the infrastructure |

## Decomposition strategies

1. **By business capability**: orders, payments, shipping. Mirrors the org chart.
2. **By subdomain**: core, supporting and generic subdomains from domain-driven design.
3. **Strangler fig**: route traffic away from the monolith one endpoint at a time.

## Database per service

Every service owns its schema. Other services read that data through the
owning service's API, never through its tables. Cross-service queries become
API composition or a read model fed by events.
""",
                },
                {
                    "slug": "service-communication",
                    "title": "Inter-Service Communication",
                    "summary": "Synchronous calls, asynchronous messaging, and the failure modes of each.",
                    "difficulty_level": "advanced",
                    "estimated_time": 45,
                    "order_index": 2,
                    "prerequisites": ["microservices-fundamentals"],
                    "key_points": [
                        "Synchronous calls couple availability: if the callee is down, so is the caller",
                        "Messaging decouples services in time at the cost of eventual consistency",
                        "Every remote call needs a timeout, and most need retries with backoff",
                        "Circuit breakers stop a failing dependency from exhausting the caller",
                    ],
                    "content": """# Inter-Service Communication

## Synchronous

HTTP/JSON or gRPC request/response. Simple to reason about, but a chain of
five synchronous calls is only as available as the product of their uptimes.

## Asynchronous

A broker (Kafka, RabbitMQ, SQS) carries events or commands. The producer does
not wait; consumers process at their own pace and must be idempotent because
delivery is at least once.

## Resilience patterns

- Timeouts on every call
- Retries with exponential backoff and jitter
- Circuit breaker: open after N failures, probe with a single request
- Bulkheads: separate pools so one slow dependency cannot starve the rest
""",
                },
            ],
        },
    ],
}

EXAMPLES = {
    "what-is-software-architecture": [
        {
            "title": "Layered Service Skeleton",
            "description": "A request flowing through controller, service and repository layers.",
            "language": "python",
            "code": """class OrderRepository:
    def __init__(self, db):
        self.db = db

    def get(self, order_id):
        return self.db.fetch_one("SELECT * FROM orders WHERE id = ?", order_id)


class OrderService:
    def __init__(self, repo):
        self.repo = repo

    def total(self, order_id):
        order = self.repo.get(order_id)
        return sum(line.price * line.qty for line in order.lines)


def get_order_total(request, service):
    return {"total": service.total(request.path_params["id"])}
""",
            "explanation": "Each layer only talks to the one beneath it, so the storage can change without touching the handler.",
            "order_index": 1,
        },
    ],
    "microservices-fundamentals": [
        {
            "title": "API Gateway Routing",
            "description": "A single entry point that authenticates requests and forwards them to the owning service.",
            "language": "javascript",
            "code": """import express from 'express';
import { createProxyMiddleware } from 'http-proxy-middleware';

const app = express();

const SERVICES = {
  users: process.env.USER_SERVICE_URL || 'http://user-service:3001',
  orders: process.env.ORDER_SERVICE_URL || 'http://order-service:3002',
};

app.use('/api', authenticate);

for (const [name, target] of Object.entries(SERVICES)) {
  app.use(`/api/${name}`, createProxyMiddleware({ target, changeOrigin: true }));
}

app.listen(8080);
""",
            "explanation": "Clients only know the gateway. Routing, authentication and rate limiting live in one place.",
            "order_index": 1,
        },
        {
            "title": "Publishing a Domain Event",
            "description": "The order service announces a placed order instead of calling inventory directly.",
            "language": "javascript",
            "code": """async function placeOrder(order) {
  await db.transaction(async (tx) => {
    await tx.insert('orders', order);
    await tx.insert('outbox', {
      topic: 'order.placed',
      payload: JSON.stringify({ orderId: order.id, items: order.items }),
    });
  });
}
""",
            "explanation": "Writing the event to an outbox table in the same transaction guarantees it is published exactly when the order commits.",
            "order_index": 2,
        },
    ],
    "service-communication": [
        {
            "title": "Retry with Exponential Backoff",
            "language": "python",
            "code": """import random
import time

import requests


def call_with_retry(url, attempts=4, base=0.2):
    for attempt in range(attempts):
        try:
            resp = requests.get(url, timeout=2)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException:
            if attempt == attempts - 1:
                raise
            time.sleep(base * 2 ** attempt + random.uniform(0, base))
""",
            "explanation": "Jitter spreads retries out so that recovering services are not hit by a synchronized wave.",
            "order_index": 1,
        },
    ],
}

QUIZ = {
    "what-is-software-architecture": [
        {
            "question_text": "Which statement best distinguishes architecture from design?",
            "options": [
                "Architecture covers decisions that are costly to change; design covers decisions local to a component",
                "Architecture is drawn in UML; design is written in code",
                "Architecture is done by managers; design is done by engineers",
                "There is no difference between them",
            ],
            "correct_answer": "Architecture covers decisions that are costly to change; design covers decisions local to a component",
            "explanation": "Architecture is about the structural decisions whose reversal touches many components.",
            "difficulty": "easy",
            "order_index": 1,
        },
    ],
    "microservices-fundamentals": [
        {
            "question_text": "What is the primary reason for the database-per-service pattern?",
            "options": [
                "It is cheaper to run several small databases",
                "Services can evolve their schemas independently without breaking each other",
                "It makes JOINs across services faster",
                "Container orchestrators require it",
            ],
            "correct_answer": "Services can evolve their schemas independently without breaking each other",
            "explanation": "Owning its data lets a service change schema or storage technology while other services keep using its API.",
            "difficulty": "medium",
            "order_index": 1,
        },
        {
            "question_text": "When should you NOT start with microservices?",
            "options": [
                "When hundreds of engineers work on the same product",
                "When parts of the system have very different scaling needs",
                "When a small team is building a new product with unclear domain boundaries",
                "When features must be deployed independently",
            ],
            "correct_answer": "When a small team is building a new product with unclear domain boundaries",
            "explanation": "A well-structured monolith lets you discover the right boundaries before paying the operational cost of distribution.",
            "difficulty": "medium",
            "order_index": 2,
        },
    ],
    "service-communication": [
        {
            "question_text": "What does a circuit breaker do when it is open?",
            "options": [
                "Retries every request until it succeeds",
                "Fails calls immediately without contacting the unhealthy dependency",
                "Queues requests until the dependency recovers",
                "Routes requests to a random healthy instance",
            ],
            "correct_answer": "Fails calls immediately without contacting the unhealthy dependency",
            "explanation": "Failing fast protects the caller's threads and gives the dependency room to recover.",
            "difficulty": "medium",
            "order_index": 1,
        },
        {
            "question_text": "Consumers of an at-least-once message broker must be idempotent.",
            "question_type": "true_false",
            "correct_answer": "true",
            "explanation": "A message may be delivered more than once, so processing it twice must have the same effect as once.",
            "difficulty": "easy",
            "order_index": 2,
        },
    ],
}

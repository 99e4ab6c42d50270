"""Backend Development category."""

CATEGORY = {
    "slug": "backend",
    "name": "Backend Development",
    "description": "Learn OOP, design patterns, and backend development in C#, Java, Python, or Node.js",
    "icon": "💻",
    "order_index": 2,
    "topics": [
        {
            "slug": "oop-fundamentals",
            "name": "OOP Fundamentals",
            "description": "Master Object-Oriented Programming concepts",
            "difficulty_level": "beginner",
            "estimated_time": 200,
            "order_index": 1,
            "lessons": [
                {
                    "slug": "classes-objects-csharp",
                    "title": "Classes and Objects in C#",
                    "summary": "The fundamental building blocks of object-oriented programming.",
                    "difficulty_level": "beginner",
                    "estimated_time": 30,
                    "order_index": 1,
                    "key_points": [
                        "A class is a blueprint; an object is an instance of it",
                        "Fields hold state, methods define behavior",
                        "Constructors establish a valid initial state",
                        "Access modifiers control what callers can see",
                    ],
                    "content": """# Classes and Objects in C#

A **class** defines the structure and behavior of objects. It bundles data
(fields and properties) with the operations that act on it (methods).

## Anatomy of a class

- **Fields** store state, usually `private`.
- **Properties** expose state with controlled access.
- **Constructors** run when an object is created.
- **Methods** implement behavior.

## Objects

`new BankAccount("Alice", 100m)` allocates an object on the heap and runs the
constructor. Every object has its own copy of the instance fields.
""",
                },
                {
                    "slug": "encapsulation-inheritance",
                    "title": "Encapsulation and Inheritance",
                    "summary": "Hide invariants behind methods and reuse behavior through base classes.",
                    "difficulty_level": "beginner",
                    "estimated_time": 35,
                    "order_index": 2,
                    "prerequisites": ["classes-objects-csharp"],
                    "key_points": [
                        "Encapsulation protects invariants by making state private",
                        "Inheritance models an is-a relationship",
                        "Prefer composition when the relationship is has-a",
                    ],
                    "content": """# Encapsulation and Inheritance

## Encapsulation

Callers should not be able to put an object into an invalid state. Keep
fields private and validate in the methods that change them.

## Inheritance

A derived class reuses and extends a base class. Override `virtual` members to
specialize behavior. Deep hierarchies are brittle: favor composition when the
relationship is not a true is-a.
""",
                },
            ],
        },
        {
            "slug": "api-development",
            "name": "REST API Development",
            "description": "REST constraints, HTTP methods, routing, middleware, validation and error handling.",
            "difficulty_level": "beginner",
            "estimated_time": 220,
            "order_index": 2,
            "lessons": [
                {
                    "slug": "rest-principles-express",
                    "title": "REST Principles & Express.js Setup",
                    "summary": "REST constraints, HTTP method semantics, status codes and a well-structured Express server.",
                    "difficulty_level": "beginner",
                    "estimated_time": 45,
                    "order_index": 1,
                    "key_points": [
                        "Resources are identified by URIs: use nouns, not verbs",
                        "GET reads, POST creates, PUT replaces, PATCH updates, DELETE removes",
                        "GET, PUT and DELETE are idempotent; POST is not",
                        "Status codes carry meaning: 201 for created, 404 for missing, 422 for invalid input",
                    ],
                    "content": """# REST Principles & Express.js Setup

## The constraints

Client-server, stateless, cacheable, uniform interface, layered system and
(optionally) code on demand.

## Method semantics

| Method | Safe | Idempotent |
|---|---|---|
| GET | yes | yes |
| POST | no | no |
| PUT | no | yes |
| PATCH | no | no |
| DELETE | no | yes |

## Project layout

Keep routes thin. Validation lives in middleware, business rules in services,
and persistence in repositories.
""",
                },
            ],
        },
    ],
}

EXAMPLES = {
    "classes-objects-csharp": [
        {
            "title": "BankAccount Class",
            "description": "Fields, a constructor, a property and methods that guard an invariant.",
            "language": "csharp",
            "code": """public class BankAccount
{
    private decimal _balance;

    public string Owner { get; }

    public BankAccount(string owner, decimal opening)
    {
        Owner = owner;
        _balance = opening;
    }

    public decimal Balance => _balance;

    public void Withdraw(decimal amount)
    {
        if (amount > _balance)
            throw new InvalidOperationException("Insufficient funds");
        _balance -= amount;
    }
}
""",
            "explanation": "The balance can only change through Withdraw, so it can never go negative.",
            "order_index": 1,
            "is_interactive": True,
        },
    ],
    "encapsulation-inheritance": [
        {
            "title": "Overriding a Virtual Method",
            "language": "csharp",
            "code": """public class Shape
{
    public virtual double Area() => 0;
}

public class Circle : Shape
{
    public double Radius { get; init; }
    public override double Area() => Math.PI * Radius * Radius;
}
""",
            "order_index": 1,
        },
    ],
    "rest-principles-express": [
        {
            "title": "Minimal Express Resource",
            "description": "A users resource with correct status codes.",
            "language": "javascript",
            "code": """import express from 'express';

const app = express();
app.use(express.json());

const users = new Map();

app.get('/users/:id', (req, res) => {
  const user = users.get(req.params.id);
  if (!user) return res.status(404).json({ error: 'not found' });
  res.json(user);
});

app.post('/users', (req, res) => {
  const id = String(users.size + 1);
  users.set(id, { id, ...req.body });
  res.status(201).location(`/users/${id}`).json(users.get(id));
});

app.listen(3000);
""",
            "explanation": "POST answers 201 with a Location header; a missing resource answers 404.",
            "order_index": 1,
        },
    ],
}

QUIZ = {
    "classes-objects-csharp": [
        {
            "question_text": "What is the relationship between a class and an object?",
            "options": [
                "An object is a blueprint and a class is an instance of it",
                "A class is a blueprint and an object is an instance of it",
                "They are two names for the same thing",
                "A class is a running process",
            ],
            "correct_answer": "A class is a blueprint and an object is an instance of it",
            "difficulty": "easy",
            "order_index": 1,
        },
    ],
    "encapsulation-inheritance": [
        {
            "question_text": "Which relationship should usually be modeled with composition rather than inheritance?",
            "options": ["is-a", "has-a", "is-the-same-as", "depends-on-nothing"],
            "correct_answer": "has-a",
            "explanation": "A car has an engine; it is not an engine.",
            "difficulty": "easy",
            "order_index": 1,
        },
    ],
    "rest-principles-express": [
        {
            "question_text": "Which HTTP method is NOT idempotent?",
            "options": ["GET", "PUT", "DELETE", "POST"],
            "correct_answer": "POST",
            "explanation": "Repeating a POST typically creates another resource.",
            "difficulty": "easy",
            "order_index": 1,
        },
        {
            "question_text": "Which status code should a successful resource creation return?",
            "options": ["200 OK", "201 Created", "204 No Content", "302 Found"],
            "correct_answer": "201 Created",
            "difficulty": "easy",
            "order_index": 2,
        },
    ],
}

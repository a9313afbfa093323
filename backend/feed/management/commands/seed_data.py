"""
Management command to seed the database with sample data.

Usage: python manage.py seed_data
"""

import random
from datetime import timedelta
from django.core.management.base import BaseCommand
from django.contrib.auth.models import User
from django.utils import timezone

from feed.exceptions import FeedError
from feed.models import BadgeGrant, Comment, CustomBadge, Follow, Notification, Post
from feed.services import create_comment, create_post, repost, toggle_follow, vote
from feed.polls import vote_in_poll


class Command(BaseCommand):
    help = 'Seed the database with sample data for testing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of users to create'
        )
        parser.add_argument(
            '--posts',
            type=int,
            default=20,
            help='Number of posts to create'
        )
        parser.add_argument(
            '--polls',
            type=int,
            default=5,
            help='Number of polls to create'
        )
        parser.add_argument(
            '--comments',
            type=int,
            default=100,
            help='Number of comments to create'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            Notification.objects.all().delete()
            BadgeGrant.objects.all().delete()
            CustomBadge.objects.all().delete()
            Follow.objects.all().delete()
            Comment.objects.all().delete()
            Post.objects.all().delete()
            User.objects.filter(is_superuser=False).delete()

        self.stdout.write('Creating users...')
        users = self._create_users(options['users'])

        self.stdout.write('Creating posts...')
        posts = self._create_posts(users, options['posts'])

        self.stdout.write('Creating polls...')
        polls = self._create_polls(users, options['polls'])

        self.stdout.write('Creating comments...')
        comments = self._create_comments(users, posts, options['comments'])

        self.stdout.write('Creating votes, follows and reposts...')
        self._create_interactions(users, posts, polls)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users\n'
            f'  - {len(posts)} posts\n'
            f'  - {len(polls)} polls\n'
            f'  - {len(comments)} comments\n'
            f'  - Votes, follows, reposts and notifications'
        ))

    def _create_users(self, count):
        users = []
        for i in range(count):
            username = f'user{i+1}'
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username=username,
                    email=f'{username}@example.com',
                    password='password123'
                )
            users.append(user)
        return users

    def _create_posts(self, users, count):
        texts = [
            "Just discovered this amazing trick! **Game changer.**",
            "Unpopular opinion: pineapple belongs on pizza",
            "Has anyone else experienced this? ||Spoiler: it gets worse||",
            "TIL something interesting about ~~myself~~ the office coffee machine",
            "Weekly roundup: ==#ffcc00==best secrets of the week==",
        ]

        posts = []
        for i in range(count):
            post = create_post(
                random.choice(users),
                f"{random.choice(texts)} #{i+1}",
                is_anonymous=random.random() < 0.2,
            )
            posts.append(post)
        return posts

    def _create_polls(self, users, count):
        questions = [
            ("Best time to post?", ["Morning", "Afternoon", "Night"]),
            ("Tabs or spaces?", ["Tabs", "Spaces"]),
            ("Favourite season?", ["Spring", "Summer", "Autumn", "Winter"]),
        ]

        polls = []
        for i in range(count):
            question, options = random.choice(questions)
            poll = create_post(
                random.choice(users),
                f"{question} #{i+1}",
                poll_options=options,
                poll_end_date=timezone.now() + timedelta(minutes=random.randint(5, 60 * 24)),
                allow_multiple_votes=random.random() < 0.3,
            )
            polls.append(poll)
        return polls

    def _create_comments(self, users, posts, count):
        comment_texts = [
            "Great point! I totally agree.",
            "Hmm, I'm not sure about this...",
            "Thanks for sharing!",
            "Can you elaborate on this?",
            "Well said!",
            "+1 to this",
        ]

        comments = []
        for i in range(count):
            post = random.choice(posts)

            # 30% chance of being a reply to existing comment
            parent_id = None
            existing_comments = [c for c in comments if c.post_id == post.id]
            if existing_comments and random.random() < 0.3:
                parent_id = random.choice(existing_comments).id

            comment = create_comment(
                random.choice(users),
                post.id,
                random.choice(comment_texts),
                parent_id=parent_id,
            )
            comments.append(comment)

        return comments

    def _create_interactions(self, users, posts, polls):
        # Duplicates and self-targets are rejected by the services; skip them
        for post in posts:
            for voter in random.sample(users, k=len(users) // 2):
                try:
                    vote(voter, 'post', post.id, random.choice(['up', 'up', 'down']))
                except FeedError:
                    pass

        for poll in polls:
            option_count = poll.poll_options.count()
            for voter in random.sample(users, k=len(users) // 2):
                try:
                    vote_in_poll(voter, poll.id, random.randrange(option_count))
                except FeedError:
                    pass

        for user in users:
            for target in random.sample(users, k=min(3, len(users))):
                try:
                    toggle_follow(user, target.id)
                except FeedError:
                    pass

        for post in random.sample(posts, k=len(posts) // 4):
            try:
                repost(random.choice(users), post.id)
            except FeedError:
                pass
